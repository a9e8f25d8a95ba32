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

import threading
import time

from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import parse_qs, urlparse

from publisher.Archive import ArchiveStreamer, ArchiveWriteError
from publisher.FileSystems import FileSystemIOError
from publisher.Kernel import PUBLIC_VERSION, PublishEvent, getLogger
from publisher.Router import ArchiveResponse, ErrorResponse, FileResponse, HtmlResponse, Request, RequestRouter
from publisher.Settings import PublishSettings
from publisher.Utils import contentDisposition

logger = getLogger(__name__)

DISCONNECT_ERRORS = (BrokenPipeError, ConnectionResetError, ConnectionAbortedError)


class PublishHandler(BaseHTTPRequestHandler):
    """Adapts router responses onto the wire. GET only; other methods get 501."""

    server_version = f'PublishFolder/{PUBLIC_VERSION}'

    def __init__(self, *args, **kwargs):
        self.responseMap = {
            FileResponse: self._sendFile,
            ArchiveResponse: self._sendArchive,
            HtmlResponse: self._sendHtml,
            ErrorResponse: self._sendError,
        }
        super().__init__(*args, **kwargs)

    def log_message(self, format, *args):
        logger.debug(f"{self.address_string()} {format % args}")

    def do_GET(self):
        parsed = urlparse(self.path)
        request = Request(path=parsed.path, query=parse_qs(parsed.query))

        try:
            response = self.server.router.route(request)
        except Exception as e:
            logger.exception(f"Unexpected failure routing {request.path!r}: {e}")
            response = ErrorResponse(HTTPStatus.INTERNAL_SERVER_ERROR, 'Internal server error')

        try:
            self.responseMap[type(response)](response)
        except DISCONNECT_ERRORS as e:
            logger.info(f"Client {self.address_string()} disconnected: {e}")
            self.close_connection = True

    def _sendBytes(self, status, payload: bytes, ctype: str):
        self.send_response(status)
        self.send_header("Content-Type", ctype)
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)

    def _sendError(self, response: ErrorResponse):
        self._sendBytes(response.status, response.message.encode('utf-8'), "text/plain; charset=utf-8")

    def _sendHtml(self, response: HtmlResponse):
        payload = response.body.encode('utf-8', errors='replace')
        self._sendBytes(response.status, payload, "text/html; charset=utf-8")
        PublishEvent.listingRender.trigger(path=self.path, size=len(payload))

    def _sendFile(self, response: FileResponse):
        # Open before any header goes out, so a failure can still become a status code.
        try:
            f = open(response.path, 'rb')
        except (FileNotFoundError, NotADirectoryError):
            self._sendError(ErrorResponse(HTTPStatus.NOT_FOUND, 'File or directory not found'))
            return
        except OSError as e:
            logger.error(f"Cannot open {response.path}: {e}")
            self._sendError(ErrorResponse(HTTPStatus.INTERNAL_SERVER_ERROR, 'Internal server error'))
            return

        chunkSize = self.server.settings.chunkSize
        written = 0
        with f:
            self.send_response(response.status)
            self.send_header("Content-Type", response.contentType)
            self.send_header("Content-Length", str(response.size))
            if response.attachment:
                self.send_header("Content-Disposition", contentDisposition(response.fileName))
            self.end_headers()

            try:
                while True:
                    data = f.read(chunkSize)
                    if not data:
                        break
                    self.wfile.write(data)
                    written += len(data)
            except DISCONNECT_ERRORS:
                raise
            except OSError as e:
                # Headers are out; the client sees a short body.
                logger.error(f"Reading {response.path} failed after {written} bytes: {e}")
                self.close_connection = True
                return

        if response.attachment:
            PublishEvent.fileDownload.trigger(path=response.path, size=written)

    def _sendArchive(self, response: ArchiveResponse):
        self.send_response(response.status)
        self.send_header("Content-Type", response.contentType)
        self.send_header("Content-Disposition", contentDisposition(response.fileName))
        self.send_header("Connection", "close")
        self.end_headers()
        self.close_connection = True

        PublishEvent.archiveStart.trigger(path=response.directoryPath, fileName=response.fileName)
        startTime = time.time()

        try:
            written = self.server.streamer.stream(response.directoryPath, self.wfile, self.server.stopEvent)
        except DISCONNECT_ERRORS as e:
            logger.info(f"Archive of {response.directoryPath} aborted, client disconnected: {e}")
            PublishEvent.archiveAbort.trigger(path=response.directoryPath, error=e)
            return
        except (ArchiveWriteError, FileSystemIOError) as e:
            # Too late for a status code: the client gets a truncated archive.
            logger.error(f"Archive of {response.directoryPath} aborted mid-stream: {e}")
            PublishEvent.archiveAbort.trigger(path=response.directoryPath, error=e)
            return

        logger.debug(f"Archive of {response.directoryPath}: {written} bytes in {time.time() - startTime:.2f}s")
        PublishEvent.archiveComplete.trigger(path=response.directoryPath, size=written)


class PublishServer(ThreadingHTTPServer):
    """
    Threaded HTTP server, one thread per connection. The only state shared
    between requests is the immutable settings and the stop flag.
    """

    allow_reuse_address = True
    daemon_threads = True

    def __init__(self, settings: PublishSettings, requestHandlerClass=None, router=None, streamer=None):
        self.settings = settings
        self.router = router or RequestRouter(settings)
        self.streamer = streamer or ArchiveStreamer(settings.compressLevel, settings.chunkSize)

        # Set on shutdown so running archives stop promptly
        self.stopEvent = threading.Event()
        self._thread = None

        if requestHandlerClass is None:
            requestHandlerClass = PublishHandler

        super().__init__((settings.host, settings.port), requestHandlerClass)

    @property
    def actualPort(self) -> int:
        """Bound port (useful when port=0)"""
        return self.server_port

    @property
    def browseURL(self) -> str:
        host = 'localhost' if self.settings.host in ('0.0.0.0', '', '::') else self.settings.host
        return f"http://{host}:{self.actualPort}"

    def start(self, blocking: bool = True) -> None:
        if blocking:
            self.serve_forever()
        else:
            self._thread = threading.Thread(target=self.serve_forever, daemon=True)
            self._thread.start()

    def stop(self) -> None:
        self.stopEvent.set()

        # shutdown() blocks forever unless serve_forever() is running
        if self._thread:
            self.shutdown()
            self._thread.join(timeout=1.0)
            self._thread = None

        self.server_close()

    def shutdown(self):
        self.stopEvent.set()
        super().shutdown()

    def handle_error(self, request, client_address):
        logger.exception(f"Unhandled error serving {client_address}")


def createServer(settings: PublishSettings, handlerClass=None) -> PublishServer:
    # Factory function to create a PublishServer with the given handler
    return PublishServer(settings, handlerClass)
