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

import datetime
import os
import stat as _stat
import struct
import zipfile
import zlib

from typing import BinaryIO, Iterator, Optional

from publisher.Kernel import getLogger
from publisher.FileSystems import FileSystemIOError, collationKey
from publisher.Paths import PublishError
from publisher.Settings import COMPRESS_LEVEL, TRANSFER_CHUNK_SIZE

logger = getLogger(__name__)


class ArchiveWriteError(PublishError):
    """Raised when an archive cannot be completed after streaming has begun"""

    def __init__(self, message: str, path: str = None):
        super().__init__(message)
        self.path = path


class ArchiveCancelledError(ArchiveWriteError):
    """Raised when the server asks a running archive to stop"""


class ArchiveStreamer:
    """
    Streams a directory subtree as a deflated ZIP archive.

    Notes:
    - Output is produced while the tree is walked; nothing is buffered beyond one chunk
    - Sizes and CRCs go into data descriptors, so no file is read twice
    - Entry names are relative to the archived directory (no wrapping folder)
    - Filename encoding: UTF-8; empty directories are not recorded
    """

    # ZIP format constants (from PKZIP APPNOTE.TXT specification)
    LOCAL_FILE_HEADER_SIGNATURE = struct.unpack('<I', zipfile.stringFileHeader)[0] # 0x04034b50
    CENTRAL_DIR_SIGNATURE = struct.unpack('<I', zipfile.stringCentralDir)[0] # 0x02014b50
    END_OF_CENTRAL_DIR_SIGNATURE = struct.unpack('<I', zipfile.stringEndArchive)[0] # 0x06054b50
    DATA_DESCRIPTOR_SIGNATURE = 0x08074b50
    ZIP64_END_OF_CENTRAL_DIR_SIGNATURE = 0x06064b50 # ZIP64 extension (not in zipfile module)
    ZIP64_END_OF_CENTRAL_DIR_LOCATOR_SIGNATURE = 0x07064b50 # ZIP64 extension (not in zipfile module)

    DEFLATE = zipfile.ZIP_DEFLATED # 8

    # General purpose bit flags
    DATA_DESCRIPTOR_FLAG = 0x0008 # Bit 3: sizes/CRC in data descriptor
    UTF8_FLAG = 0x0800 # Bit 11: filename and comment UTF-8 encoded

    ZIP64_LIMIT = 0xFFFFFFFF
    ZIP64_ENTRY_LIMIT = 0xFFFF

    def __init__(self, compressLevel: int = COMPRESS_LEVEL, chunkSize: int = TRANSFER_CHUNK_SIZE):
        if not 0 <= compressLevel <= 9:
            raise ValueError(f"Invalid compression level: {compressLevel}")

        self.compressLevel = compressLevel
        self.chunkSize = chunkSize

    @staticmethod
    def _unixToDosTime(timestamp):
        """
        Convert Unix timestamp to DOS time and date format

        DOS time: bits 0-4 seconds / 2, bits 5-10 minutes, bits 11-15 hours.
        DOS date: bits 0-4 day, bits 5-8 month, bits 9-15 year - 1980.
        """
        if timestamp is None or timestamp <= 0:
            return 0, (1 << 5) | 1 # 1980-01-01 00:00:00

        try:
            dt = datetime.datetime.fromtimestamp(timestamp)
        except (ValueError, OSError, OverflowError):
            return 0, (1 << 5) | 1

        if dt.year < 1980:
            return 0, (1 << 5) | 1
        if dt.year > 2107:
            dt = datetime.datetime(2107, 12, 31, 23, 59, 58)

        dosTime = (dt.hour << 11) | (dt.minute << 5) | (dt.second // 2)
        dosDate = ((dt.year - 1980) << 9) | (dt.month << 5) | dt.day
        return dosTime, dosDate

    def _walk(self, directoryPath: str) -> Iterator[dict]:
        """
        Depth-first walk yielding one entry per regular file, lazily, so the
        archive can start before the tree has been fully visited.
        """

        def onError(error):
            raise FileSystemIOError(f"Cannot read directory {error.filename}: {error}", error.filename) from error

        for root, dirs, files in os.walk(directoryPath, onerror=onError):
            # Same ordering as listings, for reproducible archives
            dirs.sort(key=collationKey)
            files.sort(key=collationKey)

            relRoot = os.path.relpath(root, directoryPath)

            for name in files:
                path = os.path.join(root, name)
                try:
                    st = os.stat(path)
                except FileNotFoundError:
                    logger.debug(f"Skipping vanished or dangling entry {path}")
                    continue
                except OSError as e:
                    raise FileSystemIOError(f"Cannot stat {path}: {e}", path) from e

                if not _stat.S_ISREG(st.st_mode):
                    logger.debug(f"Skipping non-regular file {path}")
                    continue

                arcname = name if relRoot == os.curdir else os.path.join(relRoot, name)
                yield {
                    'path': path,
                    'arcname': arcname.replace(os.sep, '/'),
                    'mtime': st.st_mtime,
                }

    def _yieldChunks(self, buffer: bytearray):
        while len(buffer) >= self.chunkSize:
            yield bytes(buffer[:self.chunkSize])
            del buffer[:self.chunkSize]

    def _deflateFile(self, entry: dict, buffer: bytearray, cancelEvent=None):
        """
        Compress one file into buffer, yielding whenever a chunk is full.

        Returns:
            tuple: (crc, compressedSize, uncompressedSize)
        """
        compressor = zlib.compressobj(self.compressLevel, zlib.DEFLATED, -zlib.MAX_WBITS)
        crc = 0
        uncompressedSize = 0
        compressedSize = 0

        try:
            with open(entry['path'], 'rb') as f:
                while True:
                    if cancelEvent is not None and cancelEvent.is_set():
                        raise ArchiveCancelledError("Archive cancelled", entry['path'])

                    data = f.read(self.chunkSize)
                    if not data:
                        break

                    crc = zlib.crc32(data, crc)
                    uncompressedSize += len(data)

                    compressed = compressor.compress(data)
                    if compressed:
                        compressedSize += len(compressed)
                        buffer.extend(compressed)
                        yield from self._yieldChunks(buffer)

            compressed = compressor.flush()
            compressedSize += len(compressed)
            buffer.extend(compressed)
        except OSError as e:
            raise ArchiveWriteError(f"File read failed: {entry['path']}: {e}", entry['path']) from e

        return crc, compressedSize, uncompressedSize

    def iterChunks(self, directoryPath: str, cancelEvent=None) -> Iterator[bytes]:
        """
        Generate the archive of directoryPath as a sequence of chunks.

        Closing the generator early releases any open file handle.

        Raises:
            ArchiveWriteError: If a file cannot be read once output has started
            FileSystemIOError: If a directory cannot be walked
        """
        logger.debug(f"ZIP build START: level={self.compressLevel}, folder={directoryPath}")

        buffer = bytearray()
        centralDir = []
        offset = 0

        for entry in self._walk(directoryPath):
            arcnameBytes = entry['arcname'].encode('utf-8', errors='surrogateescape')

            localHeader = self._makeLocalFileHeader(arcnameBytes, entry['mtime'], offset)
            buffer.extend(localHeader)

            crc, compressedSize, uncompressedSize = yield from self._deflateFile(entry, buffer, cancelEvent)

            useZip64 = compressedSize >= self.ZIP64_LIMIT or uncompressedSize >= self.ZIP64_LIMIT
            descriptor = self._makeDataDescriptor(crc, compressedSize, uncompressedSize, useZip64)
            buffer.extend(descriptor)

            centralDir.append({
                'arcname': arcnameBytes,
                'offset': offset,
                'crc': crc,
                'compressedSize': compressedSize,
                'uncompressedSize': uncompressedSize,
                'mtime': entry['mtime'],
            })

            offset += len(localHeader) + compressedSize + len(descriptor)
            yield from self._yieldChunks(buffer)

        centralDirStart = offset
        for cdEntry in centralDir:
            cdHeader = self._makeCentralDirHeader(cdEntry)
            buffer.extend(cdHeader)
            offset += len(cdHeader)
            yield from self._yieldChunks(buffer)

        centralDirSize = offset - centralDirStart
        self._writeEndOfCentralDirectory(buffer, len(centralDir), centralDirSize, centralDirStart, offset)

        if buffer:
            yield bytes(buffer)

        logger.debug(f"ZIP build END: {len(centralDir)} files, {offset} bytes before EOCD")

    def stream(self, directoryPath: str, sink: BinaryIO, cancelEvent=None) -> int:
        """
        Write the archive of directoryPath to sink as it is produced.

        Args:
            directoryPath: Absolute path of the directory to archive
            sink: Writable binary stream (the response body)
            cancelEvent: Optional threading.Event; when set the archive stops

        Returns:
            int: Number of bytes written

        Raises:
            ArchiveWriteError: On read failures or cancellation
            OSError: If the sink fails (e.g. client disconnected)
        """
        written = 0
        chunks = self.iterChunks(directoryPath, cancelEvent)
        try:
            for chunk in chunks:
                sink.write(chunk)
                written += len(chunk)
            sink.flush()
        finally:
            # Releases the open file handle when the sink fails mid-entry.
            chunks.close()

        return written

    def _makeLocalFileHeader(self, arcnameBytes: bytes, mtime: Optional[float], offset: int) -> bytes:
        """Create ZIP local file header; sizes and CRC follow in the data descriptor"""
        dosTime, dosDate = self._unixToDosTime(mtime)
        versionNeeded = 45 if offset >= self.ZIP64_LIMIT else 20

        header = struct.pack('<I', self.LOCAL_FILE_HEADER_SIGNATURE)
        header += struct.pack('<H', versionNeeded) # Version needed to extract
        header += struct.pack('<H', self.DATA_DESCRIPTOR_FLAG | self.UTF8_FLAG) # General purpose bit flag
        header += struct.pack('<H', self.DEFLATE) # Compression method
        header += struct.pack('<H', dosTime) # File last modification time
        header += struct.pack('<H', dosDate) # File last modification date
        header += struct.pack('<I', 0) # CRC-32 (in data descriptor)
        header += struct.pack('<I', 0) # Compressed size (in data descriptor)
        header += struct.pack('<I', 0) # Uncompressed size (in data descriptor)
        header += struct.pack('<H', len(arcnameBytes)) # Filename length
        header += struct.pack('<H', 0) # Extra field length
        header += arcnameBytes

        return header

    def _makeDataDescriptor(self, crc: int, compressedSize: int, uncompressedSize: int, useZip64: bool) -> bytes:
        descriptor = struct.pack('<I', self.DATA_DESCRIPTOR_SIGNATURE)
        descriptor += struct.pack('<I', crc & 0xFFFFFFFF)

        if useZip64:
            descriptor += struct.pack('<Q', compressedSize)
            descriptor += struct.pack('<Q', uncompressedSize)
        else:
            descriptor += struct.pack('<I', compressedSize)
            descriptor += struct.pack('<I', uncompressedSize)

        return descriptor

    def _makeCentralDirHeader(self, cdEntry: dict) -> bytes:
        """Create ZIP central directory header with Zip64 support"""
        compressedSize = cdEntry['compressedSize']
        uncompressedSize = cdEntry['uncompressedSize']
        offset = cdEntry['offset']
        arcnameBytes = cdEntry['arcname']

        dosTime, dosDate = self._unixToDosTime(cdEntry['mtime'])

        # Zip64 extra field: uncompressed size, compressed size, offset (only those that overflow)
        extraData = b''
        if uncompressedSize >= self.ZIP64_LIMIT:
            extraData += struct.pack('<Q', uncompressedSize)
        if compressedSize >= self.ZIP64_LIMIT:
            extraData += struct.pack('<Q', compressedSize)
        if offset >= self.ZIP64_LIMIT:
            extraData += struct.pack('<Q', offset)

        extraField = b''
        if extraData:
            extraField = struct.pack('<HH', 0x0001, len(extraData)) + extraData

        version = 45 if extraData else 20

        header = struct.pack('<I', self.CENTRAL_DIR_SIGNATURE)
        header += struct.pack('<H', version) # Version made by
        header += struct.pack('<H', version) # Version needed to extract
        header += struct.pack('<H', self.DATA_DESCRIPTOR_FLAG | self.UTF8_FLAG) # General purpose bit flag
        header += struct.pack('<H', self.DEFLATE) # Compression method
        header += struct.pack('<H', dosTime) # Last mod file time
        header += struct.pack('<H', dosDate) # Last mod file date
        header += struct.pack('<I', cdEntry['crc'] & 0xFFFFFFFF) # CRC-32
        header += struct.pack('<I', min(compressedSize, self.ZIP64_LIMIT)) # Compressed size
        header += struct.pack('<I', min(uncompressedSize, self.ZIP64_LIMIT)) # Uncompressed size
        header += struct.pack('<H', len(arcnameBytes)) # Filename length
        header += struct.pack('<H', len(extraField)) # Extra field length
        header += struct.pack('<H', 0) # File comment length
        header += struct.pack('<H', 0) # Disk number start
        header += struct.pack('<H', 0) # Internal file attributes
        header += struct.pack('<I', 0x20) # External file attributes (archive)
        header += struct.pack('<I', min(offset, self.ZIP64_LIMIT)) # Relative offset of local header
        header += arcnameBytes
        header += extraField

        return header

    def _writeEndOfCentralDirectory(self, buffer, entryCount, centralDirSize, centralDirStart, offset):
        """Write EOCD (and Zip64 EOCD/locator if needed) to buffer"""
        needsZip64 = (entryCount >= self.ZIP64_ENTRY_LIMIT or
                      centralDirSize >= self.ZIP64_LIMIT or
                      centralDirStart >= self.ZIP64_LIMIT)

        if needsZip64:
            record = struct.pack('<I', self.ZIP64_END_OF_CENTRAL_DIR_SIGNATURE)
            record += struct.pack('<Q', 44) # Size of zip64 end of central directory record
            record += struct.pack('<H', 45) # Version made by
            record += struct.pack('<H', 45) # Version needed to extract
            record += struct.pack('<I', 0) # Number of this disk
            record += struct.pack('<I', 0) # Disk where central directory starts
            record += struct.pack('<Q', entryCount) # Number of entries on this disk
            record += struct.pack('<Q', entryCount) # Total number of entries
            record += struct.pack('<Q', centralDirSize) # Size of central directory
            record += struct.pack('<Q', centralDirStart) # Offset of start of central directory
            buffer.extend(record)

            locator = struct.pack('<I', self.ZIP64_END_OF_CENTRAL_DIR_LOCATOR_SIGNATURE)
            locator += struct.pack('<I', 0) # Disk number with zip64 EOCD
            locator += struct.pack('<Q', offset) # Offset of zip64 EOCD
            locator += struct.pack('<I', 1) # Total number of disks
            buffer.extend(locator)

        eocd = struct.pack('<I', self.END_OF_CENTRAL_DIR_SIGNATURE)
        eocd += struct.pack('<H', 0) # Number of this disk
        eocd += struct.pack('<H', 0) # Disk where central directory starts
        eocd += struct.pack('<H', min(entryCount, self.ZIP64_ENTRY_LIMIT)) # Number of entries on this disk
        eocd += struct.pack('<H', min(entryCount, self.ZIP64_ENTRY_LIMIT)) # Total number of entries
        eocd += struct.pack('<I', min(centralDirSize, self.ZIP64_LIMIT)) # Size of central directory
        eocd += struct.pack('<I', min(centralDirStart, self.ZIP64_LIMIT)) # Offset of start of central directory
        eocd += struct.pack('<H', 0) # Comment length
        buffer.extend(eocd)
