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

import locale
import os
import signal
import sys

from publisher.CLI import configureCLIParser, configureLogging, showVersion
from publisher.Kernel import PublishEvent, getLogger
from publisher.Server import createServer
from publisher.Settings import PublishSettings
from publisher.Utils import flushPrint, formatSize

logger = getLogger(__name__)


def setupGracefulShutdown():
    """Setup signal handlers for graceful shutdown on multiple Ctrl+C"""
    context = {'shutdownInProgress': False}

    def signalHandler(signum, frame):
        if context['shutdownInProgress']:
            # Second Ctrl+C - force immediate exit without cleanup messages
            os._exit(0)
        else:
            context['shutdownInProgress'] = True
            raise KeyboardInterrupt()

    signal.signal(signal.SIGINT, signalHandler)


def setupLocale():
    """Listings sort names and format dates with the user's locale (LANG, LC_*)"""
    try:
        locale.setlocale(locale.LC_ALL, '')
    except locale.Error as e:
        logger.debug(f"Locale from environment unavailable, keeping C locale: {e}")


def onListingRender(path, size, **kwargs):
    logger.debug(f"Listed {path} ({formatSize(size)} page)")


def onFileDownload(path, size, **kwargs):
    logger.info(f"Sent {path} ({formatSize(size)})")


def onArchiveStart(path, fileName, **kwargs):
    logger.info(f"Streaming {path} as {fileName}")


def onArchiveComplete(path, size, **kwargs):
    logger.info(f"Sent folder {path} ({formatSize(size)} compressed)")


def onArchiveAbort(path, error, **kwargs):
    logger.info(f"Folder download of {path} did not complete: {error}")


def registerTransferReporting():
    """Report transfers through the log; visible with --log-level INFO"""
    PublishEvent.listingRender.subscribe(onListingRender)
    PublishEvent.fileDownload.subscribe(onFileDownload)
    PublishEvent.archiveStart.subscribe(onArchiveStart)
    PublishEvent.archiveComplete.subscribe(onArchiveComplete)
    PublishEvent.archiveAbort.subscribe(onArchiveAbort)


def main(argv=None):
    """
    Returns:
        int: Exit code (0 for success, 1 for error)
    """
    setupLocale()

    parser = configureCLIParser()
    args = parser.parse_args(argv)

    configureLogging(args.logLevel)

    if args.version:
        showVersion()
        return 0

    options = {}
    if args.compressLevel is not None:
        options['compressLevel'] = args.compressLevel

    try:
        settings = PublishSettings.build(folder=args.folder, host=args.host, port=args.port, **options)
    except ValueError as e:
        flushPrint(f"Error: {e}")
        return 1

    try:
        server = createServer(settings)
    except OSError as e:
        flushPrint(f"Error: Unable to listen on {settings.host}:{settings.port}: {e}")
        logger.debug(f"Bind failed: {e}")
        return 1

    registerTransferReporting()
    setupGracefulShutdown()

    flushPrint('\n\U0001F680 File server running!')
    flushPrint(f'\U0001F4C2 Publishing folder: {settings.publishRoot}')
    flushPrint(f'\U0001F310 Browse at: {server.browseURL}')
    flushPrint('\nPress Ctrl+C to stop\n')

    try:
        server.start()
    except KeyboardInterrupt:
        flushPrint('\nExiting on user request (Ctrl+C)...')
    finally:
        server.stopEvent.set()
        server.server_close()

    return 0


if __name__ == '__main__':
    sys.exit(main() or 0)
