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
Request routing, independent of any HTTP framework.

The router turns a Request value into one of the response values below; the
server adapter (publisher.Server) is the only place that touches sockets.
"""

import mimetypes
import os

from dataclasses import dataclass, field
from typing import Dict, List

from publisher.Kernel import getLogger
from publisher.FileSystems import EntryInspector, FileSystemIOError, NotFoundError
from publisher.Listing import DirectoryLister, renderListing
from publisher.Paths import ContainmentError, PathResolver
from publisher.Settings import PublishSettings

logger = getLogger(__name__)

DEFAULT_CONTENT_TYPE = 'application/octet-stream'
ARCHIVE_CONTENT_TYPE = 'application/zip'

# Failure -> (status, client-visible message); details stay in the log.
ERROR_RESPONSES = {
    ContainmentError: (403, 'Access denied'),
    NotFoundError: (404, 'File or directory not found'),
    FileSystemIOError: (500, 'Internal server error'),
}


@dataclass(frozen=True)
class Request:
    path: str # Still percent-encoded
    query: Dict[str, List[str]] = field(default_factory=dict)

    def flag(self, name: str) -> bool:
        values = self.query.get(name)
        return bool(values) and values[0] == 'true'


@dataclass(frozen=True)
class FileResponse:
    path: str
    fileName: str
    contentType: str
    size: int
    attachment: bool = True
    status: int = 200


@dataclass(frozen=True)
class ArchiveResponse:
    directoryPath: str
    fileName: str
    contentType: str = ARCHIVE_CONTENT_TYPE
    status: int = 200


@dataclass(frozen=True)
class HtmlResponse:
    body: str
    status: int = 200


@dataclass(frozen=True)
class ErrorResponse:
    status: int
    message: str


def guessType(path: str) -> str:
    ctype, _ = mimetypes.guess_type(path)
    return ctype or DEFAULT_CONTENT_TYPE


class RequestRouter:

    def __init__(self, settings: PublishSettings, resolver=None, inspector=None, lister=None):
        self.settings = settings
        self.resolver = resolver or PathResolver(settings.publishRoot)
        self.inspector = inspector or EntryInspector()
        self.lister = lister or DirectoryLister(self.inspector)

    def _isStatic(self, path: str) -> bool:
        prefix = self.settings.staticPrefix
        return bool(prefix) and (path == prefix or path.startswith(prefix + '/'))

    def archiveName(self, directoryPath: str) -> str:
        folder = os.path.basename(directoryPath.rstrip(os.sep))
        return f"{folder or self.settings.defaultArchiveName}.zip"

    def route(self, request: Request):
        """
        Resolve, inspect and dispatch one GET request.

        Returns:
            FileResponse, ArchiveResponse, HtmlResponse or ErrorResponse
        """
        try:
            if self._isStatic(request.path):
                response = self._routeStatic(request)
                if response is not None:
                    return response
            return self._routeBrowse(request)
        except (ContainmentError, NotFoundError, FileSystemIOError) as e:
            status, message = next(v for k, v in ERROR_RESPONSES.items() if isinstance(e, k))
            if status >= 500:
                logger.exception(f"Request for {request.path!r} failed: {e}")
            else:
                logger.debug(f"Request for {request.path!r} rejected with {status}: {e}")
            return ErrorResponse(status, message)

    def _routeBrowse(self, request: Request):
        resolved = self.resolver.resolve(request.path)
        entry = self.inspector.inspect(resolved.absolutePath)

        if not entry.isDir:
            return FileResponse(
                path=entry.absolutePath,
                fileName=entry.name,
                contentType=guessType(entry.absolutePath),
                size=entry.sizeBytes,
            )

        if request.flag('download'):
            return ArchiveResponse(
                directoryPath=resolved.absolutePath,
                fileName=self.archiveName(resolved.absolutePath),
            )

        listing = self.lister.list(resolved)
        try:
            body = renderListing(listing, self.settings.rootName)
        except OSError as e:
            raise FileSystemIOError(f"Listing template unavailable: {e}") from e

        return HtmlResponse(body)

    def _routeStatic(self, request: Request):
        """
        Serve an existing file of the tree inline.

        Returns None when the mount has no such file; the request then falls
        through to browsing, where /static/<path> means <root>/static/<path>.
        """
        resolved = self.resolver.resolve(request.path[len(self.settings.staticPrefix):])
        try:
            entry = self.inspector.inspect(resolved.absolutePath)
        except NotFoundError:
            return None

        if entry.isDir:
            return None

        return FileResponse(
            path=entry.absolutePath,
            fileName=entry.name,
            contentType=guessType(entry.absolutePath),
            size=entry.sizeBytes,
            attachment=False,
        )
