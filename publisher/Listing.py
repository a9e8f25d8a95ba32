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

import concurrent.futures
import html
import os
import posixpath
import re

from dataclasses import dataclass
from typing import Optional, Tuple
from urllib.parse import quote

from publisher.Kernel import getLogger
from publisher.FileSystems import EntryDescriptor, EntryInspector, FileSystemIOError, NotFoundError, collationKey
from publisher.Paths import ResolvedPath

logger = getLogger(__name__)

MAX_INSPECT_WORKERS = 8

TEMPLATE_PATH = os.path.join(os.path.dirname(__file__), 'static', 'listing.html')
PLACEHOLDER = re.compile(r"\{\{ (\w+) \}\}")

FOLDER_ICON = '\U0001F4C1'
FILE_ICON = '\U0001F4C4'
PARENT_ICON = '⬆️'


def sortEntries(entries):
    """Directories first, then ascending by name in the platform's collation"""
    return sorted(entries, key=lambda e: (not e.isDir, collationKey(e.name)))


@dataclass(frozen=True)
class DirectoryListing:
    directory: ResolvedPath
    entries: Tuple[EntryDescriptor, ...]

    @property
    def isEmpty(self) -> bool:
        return not self.entries

    @property
    def currentPath(self) -> str:
        return self.directory.relativePath

    @property
    def parentPath(self) -> Optional[str]:
        return self.directory.parentPath


class DirectoryLister:
    """Enumerates one directory level and inspects its children concurrently."""

    def __init__(self, inspector: EntryInspector = None, maxWorkers: int = MAX_INSPECT_WORKERS):
        self.inspector = inspector or EntryInspector()
        self.maxWorkers = maxWorkers

    def _enumerate(self, path: str):
        try:
            return os.listdir(path)
        except (FileNotFoundError, NotADirectoryError) as e:
            raise NotFoundError(f"Directory not found: {path}", path) from e
        except OSError as e:
            logger.error(f"Cannot list {path}: {e}")
            raise FileSystemIOError(f"Cannot list {path}: {e}", path) from e

    def list(self, directory: ResolvedPath) -> DirectoryListing:
        """
        List the immediate children of a directory.

        A child that disappears between enumeration and inspection is left out;
        every other inspection failure fails the whole listing.

        Raises:
            NotFoundError: If the directory itself is gone
            FileSystemIOError: If enumeration or any child inspection fails
        """
        names = self._enumerate(directory.absolutePath)
        entries = []

        if names:
            workers = max(1, min(self.maxWorkers, len(names)))
            with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as pool:
                futures = {
                    pool.submit(self.inspector.inspect, os.path.join(directory.absolutePath, name), name): name
                    for name in names
                }

                # Merge point: every inspection has finished before sorting.
                concurrent.futures.wait(futures)

                for future, name in futures.items():
                    try:
                        entries.append(future.result())
                    except NotFoundError:
                        logger.debug(f"Skipping vanished entry {name!r} in {directory.absolutePath}")

        return DirectoryListing(directory=directory, entries=tuple(sortEntries(entries)))


def _href(relativePath: str, isDir: bool = False) -> str:
    url = '/' + quote(relativePath, safe='/', errors='surrogateescape')
    if isDir and relativePath:
        url += '/'
    return url


def _loadTemplate() -> str:
    with open(TEMPLATE_PATH, 'r', encoding='utf-8') as f:
        return f.read()


def renderListing(listing: DirectoryListing, rootName: str) -> str:
    """Render a listing page; every name is escaped and every link encoded."""
    currentPath = listing.currentPath

    breadcrumb = [f'<a href="/">{html.escape(rootName)}</a>']
    parts = [p for p in currentPath.split('/') if p]
    for i, part in enumerate(parts):
        breadcrumb.append(f' / <a href="{_href("/".join(parts[:i + 1]), True)}">{html.escape(part)}</a>')

    items = []
    if listing.parentPath is not None:
        items.append(
            '<li class="file-item back-link">'
            f'<span class="file-icon">{PARENT_ICON}</span>'
            f'<a href="{_href(listing.parentPath, True)}" class="file-name">..</a>'
            '<span class="file-size"></span><span class="file-date"></span></li>'
        )

    if listing.isEmpty:
        items.append('<li class="empty">This folder is empty</li>')

    for entry in listing.entries:
        icon = FOLDER_ICON if entry.isDir else FILE_ICON
        href = _href(posixpath.join(currentPath, entry.name), entry.isDir)
        items.append(
            '<li class="file-item">'
            f'<span class="file-icon">{icon}</span>'
            f'<a href="{href}" class="file-name">{html.escape(entry.name)}</a>'
            f'<span class="file-size">{html.escape(entry.sizeText)}</span>'
            f'<span class="file-date">{html.escape(entry.modifiedText)}</span></li>'
        )

    values = {
        'title': html.escape('/' + currentPath),
        'breadcrumb': ''.join(breadcrumb),
        'items': '\n'.join(items),
    }
    # Single pass, so a name that looks like a placeholder stays literal
    return PLACEHOLDER.sub(lambda m: values.get(m.group(1), m.group(0)), _loadTemplate())
