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

import os
import unittest

from unittest.mock import patch

from publisher.Utils import contentDisposition, formatSize, getEnv


class TestFormatSize(unittest.TestCase):
    """Test cases for the formatSize utility function."""

    def testFormatting(self):
        testCases = [
            # (size_in_bytes, expected, description)
            (0, "0 Bytes", "zero bytes"),
            (1, "1 Bytes", "single byte"),
            (512, "512 Bytes", "bytes"),
            (1024, "1 KB", "one kilobyte"),
            (1536, "1.5 KB", "fraction of a kilobyte"),
            (1000, "1000 Bytes", "1024-based, not 1000-based"),
            (int(2.25 * 1024 ** 2), "2.25 MB", "megabytes"),
            (1234567, "1.18 MB", "rounded to two decimals"),
            (3 * 1024 ** 3, "3 GB", "gigabytes"),
            (int(1.5 * 1024 ** 4), "1.5 TB", "terabytes"),
        ]

        for size, expected, description in testCases:
            with self.subTest(size=size, description=description):
                result = formatSize(size)
                print(f"formatSize({size}) = '{result}' ({description})")
                self.assertEqual(result, expected)


class TestContentDisposition(unittest.TestCase):

    def testAsciiName(self):
        self.assertEqual(
            contentDisposition('report.pdf'),
            "attachment; filename=\"report.pdf\"; filename*=UTF-8''report.pdf"
        )

    def testNonAsciiName(self):
        value = contentDisposition('報告 final.txt')

        self.assertTrue(value.startswith('attachment; filename="__ final.txt"'))
        self.assertIn("filename*=UTF-8''%E5%A0%B1%E5%91%8A%20final.txt", value)

    def testQuotesAreEscaped(self):
        value = contentDisposition('say "hi".txt')

        self.assertIn('filename="say \\"hi\\".txt"', value)
        self.assertIn('%22hi%22', value)

    def testInlineDisposition(self):
        self.assertTrue(contentDisposition('a.txt', 'inline').startswith('inline;'))

    def testUndecodableName(self):
        name = b'caf\xe9.txt'.decode('utf-8', errors='surrogateescape')
        self.assertIn("filename*=UTF-8''caf%E9.txt", contentDisposition(name))


class TestGetEnv(unittest.TestCase):

    def testTypeFollowsDefault(self):
        with patch.dict(os.environ, {'PUBLISH_TEST_INT': '8080', 'PUBLISH_TEST_BOOL': 'True', 'PUBLISH_TEST_STR': 'x'}):
            self.assertEqual(getEnv('PUBLISH_TEST_INT', 3000), 8080)
            self.assertIs(getEnv('PUBLISH_TEST_BOOL', False), True)
            self.assertEqual(getEnv('PUBLISH_TEST_STR', 'default'), 'x')
            self.assertEqual(getEnv('PUBLISH_TEST_STR', None), 'x')

    def testMissingOrInvalidGivesDefault(self):
        with patch.dict(os.environ, {'PUBLISH_TEST_INT': 'not a number'}):
            self.assertEqual(getEnv('PUBLISH_TEST_INT', 3000), 3000)
        self.assertEqual(getEnv('PUBLISH_TEST_UNSET_VARIABLE', 7), 7)


if __name__ == '__main__':
    unittest.main()
