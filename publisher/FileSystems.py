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
"""
Filesystem inspection for the request pipeline.

Every query goes through a single os.stat() call and is turned into an
immutable EntryDescriptor. Nothing is cached between requests.
"""

import datetime
import locale
import os
import stat as _stat

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from publisher.Kernel import getLogger
from publisher.Paths import PublishError
from publisher.Utils import formatSize

logger = getLogger(__name__)

# Shown in place of a size for directories
NO_SIZE = '-'


def collationKey(name: str):
    """Sort key following the platform's string collation"""
    try:
        return locale.strxfrm(name)
    except (ValueError, UnicodeError):
        # Undecodable names (surrogate escapes) fall back to code point order
        return name


class NotFoundError(PublishError):
    """Raised when the inspected path does not exist"""

    def __init__(self, message: str, path: str = None):
        super().__init__(message)
        self.path = path


class FileSystemIOError(PublishError):
    """Any other OS-level failure (permission denied, I/O error, ...)"""

    def __init__(self, message: str, path: str = None):
        super().__init__(message)
        self.path = path


class EntryKind(Enum):
    FILE = 'file'
    DIRECTORY = 'directory'


@dataclass(frozen=True)
class EntryDescriptor:
    """File/directory metadata"""
    name: str
    kind: EntryKind
    sizeBytes: Optional[int] # None for directories
    modifiedAt: float
    absolutePath: str

    @property
    def isDir(self) -> bool:
        return self.kind is EntryKind.DIRECTORY

    @property
    def sizeText(self) -> str:
        return NO_SIZE if self.sizeBytes is None else formatSize(self.sizeBytes)

    @property
    def modifiedText(self) -> str:
        # Local time zone, locale's preferred date/time representation
        return datetime.datetime.fromtimestamp(self.modifiedAt).strftime('%c')


class EntryInspector:

    def inspect(self, path: str, name: str = None) -> EntryDescriptor:
        """
        Stat a path and describe it.

        Args:
            path: Absolute path to file or directory
            name: Display name, defaults to the base name of path

        Raises:
            NotFoundError: If the path does not exist
            FileSystemIOError: For any other OS failure
        """
        try:
            # One stat() only; os.path.isdir() would issue another.
            st = os.stat(path)
        except (FileNotFoundError, NotADirectoryError) as e:
            raise NotFoundError(f"No such file or directory: {path}", path) from e
        except (OSError, ValueError) as e:
            logger.error(f"Cannot stat {path}: {e}")
            raise FileSystemIOError(f"Cannot stat {path}: {e}", path) from e

        isDir = _stat.S_ISDIR(st.st_mode)
        return EntryDescriptor(
            name=os.path.basename(path) if name is None else name,
            kind=EntryKind.DIRECTORY if isDir else EntryKind.FILE,
            sizeBytes=None if isDir else int(st.st_size),
            modifiedAt=float(st.st_mtime),
            absolutePath=path,
        )
