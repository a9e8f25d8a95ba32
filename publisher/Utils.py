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
import sys

import bitmath

from urllib.parse import quote

# bitmath NIST prefixes shown with the short names listings traditionally use
UNIT_NAMES = {'Byte': 'Bytes', 'KiB': 'KB', 'MiB': 'MB', 'GiB': 'GB', 'TiB': 'TB', 'PiB': 'PB'}


# flush is required when stdout is a pipe (e.g. under a service manager).
def flushPrint(text):
    try:
        print(text, flush=True)
    except UnicodeEncodeError:
        # Terminals that can't show emoji (e.g. cp950 consoles)
        buf = getattr(sys.stdout, "buffer", None)
        if buf is not None:
            buf.write(text.encode("utf-8", errors="replace"))
            buf.write(b"\n")
            buf.flush()
        else:
            print(text.encode('ascii', errors='replace').decode('ascii'), flush=True)


def formatSize(size):
    """1024-based size, at most two decimals: '0 Bytes', '512 Bytes', '1.5 KB', '2.25 MB'"""
    if size <= 0:
        return '0 Bytes'

    best = bitmath.Byte(size).best_prefix(system=bitmath.NIST)
    return f"{round(best.value, 2):g} {UNIT_NAMES.get(best.unit_singular, best.unit_singular)}"


def getEnv(envVar, default):
    """Safely get value from environment variable with automatic type detection based on default"""
    try:
        value = os.getenv(envVar)
        if value is not None:
            if default is None:
                return value

            # Automatically detect type based on default value
            if isinstance(default, bool):
                return value == "True"
            elif isinstance(default, int):
                return int(value)
            elif isinstance(default, float):
                return float(value)
            else:
                return type(default)(value)
        return default
    except (ValueError, TypeError):
        return default


def contentDisposition(fileName, disposition='attachment'):
    """
    Build a Content-Disposition value that survives non-ASCII names:
    an ASCII fallback filename plus an RFC 5987 filename*.
    """
    fallback = ''.join(ch if 0x20 <= ord(ch) < 0x7F else '_' for ch in fileName)
    fallback = fallback.replace('\\', '\\\\').replace('"', '\\"')
    encoded = quote(fileName, safe='', errors='surrogateescape')
    return f"{disposition}; filename=\"{fallback}\"; filename*=UTF-8''{encoded}"
