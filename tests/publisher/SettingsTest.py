#!/usr/bin/env python
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0
#
# PublishFolder - Browse and download a folder over HTTP
# Copyright (C) 2025-2026 PublishFolder contributors
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import dataclasses
import os
import tempfile
import unittest

from unittest.mock import patch

from publisher.Settings import DEFAULT_HOST, DEFAULT_PORT, PublishSettings


class PublishSettingsTest(unittest.TestCase):

    def setUp(self):
        self._tempDirObj = tempfile.TemporaryDirectory()
        self.tempDir = os.path.realpath(self._tempDirObj.name)
        os.makedirs(os.path.join(self.tempDir, 'shared'))

    def tearDown(self):
        self._tempDirObj.cleanup()

    def testDefaults(self):
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop('HOST', None)
            os.environ.pop('PORT', None)
            settings = PublishSettings.build(cwd=self.tempDir)

        self.assertEqual(settings.publishRoot, self.tempDir)
        self.assertEqual(settings.host, DEFAULT_HOST)
        self.assertEqual(settings.port, DEFAULT_PORT)
        self.assertEqual(settings.staticPrefix, '/static')

    def testFolderIsRelativeToCwd(self):
        settings = PublishSettings.build(folder='shared', cwd=self.tempDir)

        self.assertEqual(settings.publishRoot, os.path.join(self.tempDir, 'shared'))
        self.assertEqual(settings.rootName, 'shared')

    def testFolderIsCanonical(self):
        settings = PublishSettings.build(folder='shared/../shared/', cwd=self.tempDir)
        self.assertEqual(settings.publishRoot, os.path.join(self.tempDir, 'shared'))

    def testMissingFolder(self):
        with self.assertRaises(ValueError):
            PublishSettings.build(folder='nope', cwd=self.tempDir)

    def testFileIsNotAFolder(self):
        with open(os.path.join(self.tempDir, 'file.txt'), 'w') as f:
            f.write('x')

        with self.assertRaises(ValueError):
            PublishSettings.build(folder='file.txt', cwd=self.tempDir)

    def testEnvironmentFallback(self):
        with patch.dict(os.environ, {'HOST': '127.0.0.1', 'PORT': '8123'}):
            settings = PublishSettings.build(cwd=self.tempDir)
            self.assertEqual(settings.host, '127.0.0.1')
            self.assertEqual(settings.port, 8123)

            settings = PublishSettings.build(cwd=self.tempDir, host='::1', port=9000)
            self.assertEqual(settings.host, '::1')
            self.assertEqual(settings.port, 9000)

    def testCompressLevel(self):
        self.assertEqual(PublishSettings.build(cwd=self.tempDir, compressLevel=1).compressLevel, 1)

        for level in (-1, 10):
            with self.assertRaises(ValueError):
                PublishSettings.build(cwd=self.tempDir, compressLevel=level)

    def testImmutable(self):
        settings = PublishSettings.build(cwd=self.tempDir)

        with self.assertRaises(dataclasses.FrozenInstanceError):
            settings.port = 1

    def testRootNameOfFilesystemRoot(self):
        self.assertEqual(PublishSettings(publishRoot=os.sep).rootName, 'folder')


if __name__ == '__main__':
    unittest.main()
