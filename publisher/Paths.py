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
Request path resolution.

Maps an untrusted, percent-encoded URL path onto an absolute path inside the
publish root. Resolution is purely lexical: the filesystem is never touched,
so a rejected request has no side effect at all.
"""

import os
import posixpath

from dataclasses import dataclass
from urllib.parse import unquote

from publisher.Kernel import getLogger

logger = getLogger(__name__)


class PublishError(Exception):
    """Base class of every error the request pipeline maps to a response"""


class ContainmentError(PublishError):
    """Raised when a request path is malformed or escapes the publish root"""

    def __init__(self, message: str, requestPath: str = None):
        super().__init__(message)
        self.requestPath = requestPath


@dataclass(frozen=True)
class ResolvedPath:
    absolutePath: str
    relativePath: str # '/'-separated, '' for the publish root itself

    @property
    def isRoot(self) -> bool:
        return self.relativePath == ''

    @property
    def parentPath(self):
        """Relative path of the parent directory, None at the publish root"""
        if self.isRoot:
            return None
        return posixpath.dirname(self.relativePath)


class PathResolver:

    def __init__(self, publishRoot: str):
        self.publishRoot = os.path.normpath(os.path.abspath(publishRoot))

        # '/' must not become '//'
        self._prefix = self.publishRoot.rstrip(os.sep) + os.sep

    def _decode(self, requestPath: str) -> str:
        # Names that are not valid UTF-8 map back to their raw bytes
        decoded = unquote(requestPath, errors='surrogateescape')

        if '\x00' in decoded:
            raise ContainmentError("Null byte in request path", requestPath)

        # A second decoding pass must not reveal traversal (e.g. %252e%252e)
        if '%' in decoded:
            twice = unquote(decoded, errors='surrogateescape')
            if twice != decoded and self._escapes(twice):
                raise ContainmentError("Encoded traversal in request path", requestPath)

        return decoded

    def _escapes(self, relativePath: str) -> bool:
        segments = relativePath.replace('\\', '/').split('/')
        return '..' in segments or '\x00' in relativePath

    def isContained(self, absolutePath: str) -> bool:
        return absolutePath == self.publishRoot or absolutePath.startswith(self._prefix)

    def resolve(self, requestPath: str) -> ResolvedPath:
        """
        Resolve a URL path to a location inside the publish root.

        Args:
            requestPath: URL path as sent by the client, still percent-encoded

        Returns:
            ResolvedPath with the canonical absolute path and its relative form

        Raises:
            ContainmentError: If the path is malformed or lies outside the root
        """
        decoded = self._decode(requestPath or '')

        # Leading separators would make os.path.join discard the root.
        relative = decoded.lstrip('/')
        if os.sep != '/':
            relative = relative.lstrip(os.sep)

        absolutePath = os.path.normpath(os.path.join(self.publishRoot, relative))

        if not self.isContained(absolutePath):
            logger.warning(f"Rejected request path outside publish root: {requestPath!r}")
            raise ContainmentError("Path escapes publish root", requestPath)

        relativePath = os.path.relpath(absolutePath, self.publishRoot)
        if relativePath == os.curdir:
            relativePath = ''

        return ResolvedPath(absolutePath=absolutePath, relativePath=relativePath.replace(os.sep, '/'))
