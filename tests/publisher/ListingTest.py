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

import errno
import locale
import os
import tempfile
import threading
import unittest

from publisher.FileSystems import EntryInspector, FileSystemIOError, NotFoundError
from publisher.Listing import DirectoryLister, renderListing
from publisher.Paths import PathResolver


class VanishingInspector(EntryInspector):
    """Pretends some children disappear between enumeration and inspection"""

    def __init__(self, vanished=(), failing=()):
        self.vanished = set(vanished)
        self.failing = set(failing)
        self.threads = set()
        self._lock = threading.Lock()

    def inspect(self, path, name=None):
        with self._lock:
            self.threads.add(threading.get_ident())

        if name in self.vanished:
            raise NotFoundError(f"gone: {path}", path)
        if name in self.failing:
            raise FileSystemIOError(f"denied: {path}", path)
        return super().inspect(path, name)


class DirectoryListerTest(unittest.TestCase):

    def setUp(self):
        self._tempDirObj = tempfile.TemporaryDirectory()
        self.root = os.path.realpath(self._tempDirObj.name)
        self.resolver = PathResolver(self.root)

    def tearDown(self):
        self._tempDirObj.cleanup()

    def _touch(self, *parts, content=b'data'):
        path = os.path.join(self.root, *parts)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, 'wb') as f:
            f.write(content)
        return path

    def testDirectoriesFirstThenByName(self):
        self._touch('b.txt')
        os.makedirs(os.path.join(self.root, 'A'))
        self._touch('a.txt')

        listing = DirectoryLister().list(self.resolver.resolve('/'))

        self.assertEqual([e.name for e in listing.entries], ['A', 'a.txt', 'b.txt'])
        self.assertTrue(listing.entries[0].isDir)
        self.assertFalse(listing.isEmpty)

    def testDirectoriesSortedAmongThemselves(self):
        for name in ('zeta', 'alpha', 'mid'):
            os.makedirs(os.path.join(self.root, name))
        self._touch('0-first-file.txt')

        listing = DirectoryLister().list(self.resolver.resolve('/'))
        self.assertEqual([e.name for e in listing.entries], ['alpha', 'mid', 'zeta', '0-first-file.txt'])

    def testNamesFollowLocaleCollation(self):
        previous = locale.setlocale(locale.LC_COLLATE)
        for name in ('en_US.UTF-8', 'en_US.utf8', 'en_GB.UTF-8', 'de_DE.UTF-8'):
            try:
                locale.setlocale(locale.LC_COLLATE, name)
                break
            except locale.Error:
                continue
        else:
            self.skipTest('No dictionary-order locale installed')

        try:
            for name in ('B.txt', 'c.txt', 'a.txt'):
                self._touch(name)

            listing = DirectoryLister().list(self.resolver.resolve('/'))
            self.assertEqual([e.name for e in listing.entries], ['a.txt', 'B.txt', 'c.txt'])
        finally:
            locale.setlocale(locale.LC_COLLATE, previous)

    def testCodePointOrderInCLocale(self):
        previous = locale.setlocale(locale.LC_COLLATE)
        locale.setlocale(locale.LC_COLLATE, 'C')
        try:
            for name in ('B.txt', 'c.txt', 'a.txt'):
                self._touch(name)

            listing = DirectoryLister().list(self.resolver.resolve('/'))
            self.assertEqual([e.name for e in listing.entries], ['B.txt', 'a.txt', 'c.txt'])
        finally:
            locale.setlocale(locale.LC_COLLATE, previous)

    def testNotRecursive(self):
        self._touch('sub', 'deep', 'file.txt')

        listing = DirectoryLister().list(self.resolver.resolve('/'))
        self.assertEqual([e.name for e in listing.entries], ['sub'])

    def testEmptyDirectory(self):
        os.makedirs(os.path.join(self.root, 'empty'))

        listing = DirectoryLister().list(self.resolver.resolve('/empty'))

        self.assertTrue(listing.isEmpty)
        self.assertEqual(listing.entries, ())
        self.assertEqual(listing.currentPath, 'empty')
        self.assertEqual(listing.parentPath, '')

    def testVanishedChildIsSkipped(self):
        for name in ('keep.txt', 'gone.txt', 'also-keep.txt'):
            self._touch(name)

        lister = DirectoryLister(VanishingInspector(vanished={'gone.txt'}))
        listing = lister.list(self.resolver.resolve('/'))

        self.assertEqual([e.name for e in listing.entries], ['also-keep.txt', 'keep.txt'])

    def testChildFailureFailsWholeListing(self):
        for name in ('ok.txt', 'locked.txt'):
            self._touch(name)

        lister = DirectoryLister(VanishingInspector(failing={'locked.txt'}))
        with self.assertRaises(FileSystemIOError):
            lister.list(self.resolver.resolve('/'))

    def testChildrenInspectedConcurrently(self):
        for i in range(32):
            self._touch(f'file{i:02d}.txt')

        inspector = VanishingInspector()
        listing = DirectoryLister(inspector, maxWorkers=4).list(self.resolver.resolve('/'))

        self.assertEqual(len(listing.entries), 32)
        self.assertNotIn(threading.get_ident(), inspector.threads)
        self.assertEqual([e.name for e in listing.entries], sorted(e.name for e in listing.entries))

    def testMissingDirectory(self):
        with self.assertRaises(NotFoundError):
            DirectoryLister().list(self.resolver.resolve('/nope'))

    def testUnreadableDirectory(self):
        from unittest.mock import patch

        with patch('publisher.Listing.os.listdir', side_effect=PermissionError(errno.EACCES, 'denied')):
            with self.assertRaises(FileSystemIOError):
                DirectoryLister().list(self.resolver.resolve('/'))


class RenderListingTest(unittest.TestCase):

    def setUp(self):
        self._tempDirObj = tempfile.TemporaryDirectory()
        self.root = os.path.realpath(self._tempDirObj.name)
        self.resolver = PathResolver(self.root)

    def tearDown(self):
        self._tempDirObj.cleanup()

    def testEmptyMarker(self):
        listing = DirectoryLister().list(self.resolver.resolve('/'))
        page = renderListing(listing, 'shared')

        self.assertIn('This folder is empty', page)
        self.assertIn('<a href="/">shared</a>', page)
        self.assertIn('?download=true', page)
        # No parent link at the root
        self.assertNotIn('class="file-name">..</a>', page)

    def testEntriesLinksAndEscaping(self):
        sub = os.path.join(self.root, 'my docs')
        os.makedirs(os.path.join(sub, 'inner'))
        with open(os.path.join(sub, '<b>&.txt'), 'wb') as f:
            f.write(b'12345')

        listing = DirectoryLister().list(self.resolver.resolve('/my%20docs'))
        page = renderListing(listing, 'shared')

        self.assertIn('Publish Folder - /my docs', page)
        self.assertIn('href="/my%20docs/inner/"', page)
        self.assertIn('href="/my%20docs/%3Cb%3E%26.txt"', page)
        self.assertIn('&lt;b&gt;&amp;.txt', page)
        self.assertNotIn('<b>&.txt', page)
        self.assertIn(' / <a href="/my%20docs/">my docs</a>', page)
        self.assertIn('class="file-name">..</a>', page)
        self.assertNotIn('This folder is empty', page)

        # Directory comes first and shows no size
        self.assertLess(page.index('inner'), page.index('&lt;b&gt;'))
        self.assertIn('<span class="file-size">-</span>', page)


if __name__ == '__main__':
    unittest.main()
