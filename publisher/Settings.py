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

from dataclasses import dataclass

from publisher.Kernel import getLogger
from publisher.Utils import getEnv

DEFAULT_HOST = '0.0.0.0'
DEFAULT_PORT = 3000

# Mount prefix for inline (non-attachment) access to the published tree
STATIC_PREFIX = '/static'

# Archive name used when the published directory has no base name (e.g. "/")
DEFAULT_ARCHIVE_NAME = 'folder'

# Deflate level for folder archives, 0 (store speed) .. 9 (best ratio)
COMPRESS_LEVEL = getEnv('PUBLISH_COMPRESS_LEVEL', 9)

# Transfer chunk size (256 KiB) - used for both file and archive downloads
TRANSFER_CHUNK_SIZE = getEnv('TRANSFER_CHUNK_SIZE', 256 * 1024)

logger = getLogger(__name__)


@dataclass(frozen=True)
class PublishSettings:
    """Process-wide configuration, built once at startup and passed to the server."""
    publishRoot: str
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    compressLevel: int = COMPRESS_LEVEL
    chunkSize: int = TRANSFER_CHUNK_SIZE
    staticPrefix: str = STATIC_PREFIX
    defaultArchiveName: str = DEFAULT_ARCHIVE_NAME

    @property
    def rootName(self) -> str:
        return os.path.basename(self.publishRoot.rstrip(os.sep)) or self.defaultArchiveName

    @classmethod
    def build(cls, folder=None, host=None, port=None, cwd=None, **kwargs) -> 'PublishSettings':
        """
        Build settings from command line values, falling back to the environment
        (HOST, PORT) and then to defaults.

        Raises:
            ValueError: If the publish folder does not exist or is not a directory
        """
        cwd = cwd or os.getcwd()
        publishRoot = os.path.realpath(os.path.join(cwd, folder) if folder else cwd)

        if not os.path.isdir(publishRoot):
            raise ValueError(f"Not a directory: {publishRoot}")

        if host is None:
            host = getEnv('HOST', DEFAULT_HOST)
        if port is None:
            port = getEnv('PORT', DEFAULT_PORT)

        compressLevel = kwargs.pop('compressLevel', COMPRESS_LEVEL)
        if not 0 <= compressLevel <= 9:
            raise ValueError(f"Invalid compression level: {compressLevel}")

        settings = cls(publishRoot=publishRoot, host=host, port=port, compressLevel=compressLevel, **kwargs)
        logger.debug(f"Settings built: {settings}")
        return settings
