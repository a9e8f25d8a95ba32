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

import argparse
import json
import os
import logging
import logging.config

from publisher.Kernel import PUBLIC_VERSION, LOG_LEVEL_MAPPING, configureGlobalLogLevel, getLogger
from publisher.Utils import flushPrint, getEnv

logger = getLogger(__name__)


def configureLogging(logLevel):
    """Configure logging level from --log-level or PUBLISH_LOGGING_LEVEL

    Both can be:
    - A logging level name (DEBUG, INFO, WARNING, ERROR)
    - A path to a logging configuration JSON file
    """

    def suppressNoisyLogger():
        logging.getLogger('sentry_sdk').setLevel(logging.INFO)

    # Priority: CLI argument > environment variable > None (no change)
    if logLevel is None:
        logLevel = getEnv('PUBLISH_LOGGING_LEVEL', None)

    if logLevel is None:
        suppressNoisyLogger()
        return None

    if os.path.isfile(logLevel):
        try:
            with open(logLevel, 'r') as configFile:
                configDict = json.load(configFile)

            logging.config.dictConfig(configDict)
            logger.info(f"Logging configured from file: {logLevel}")
            suppressNoisyLogger()
            return logLevel

        except (json.JSONDecodeError, ValueError, KeyError) as e:
            flushPrint(f"Failed to load logging config from {logLevel}: {e}")
            flushPrint("Falling back to default logging level configuration")
            logLevel = 'WARNING'

    if logLevel.upper() in LOG_LEVEL_MAPPING:
        configureGlobalLogLevel(LOG_LEVEL_MAPPING[logLevel.upper()])
        logger.info(f"Logging level set to {logLevel}")
    else:
        logger.warning(f"Invalid logging level '{logLevel}', using WARNING as default")
        configureGlobalLogLevel(logging.WARNING)

    suppressNoisyLogger()

    return logLevel


def showVersion():
    flushPrint(f"PublishFolder v{PUBLIC_VERSION}")


def configureCLIParser():
    parser = argparse.ArgumentParser(
        prog='publishfolder',
        description='Browse and download a folder over HTTP.',
    )

    parser.add_argument(
        'folder',
        nargs='?',
        default=None,
        help='Folder to publish, relative to the current directory (default: current directory)'
    )
    parser.add_argument('--host', default=None, help='Bind address (default: $HOST or 0.0.0.0)')
    parser.add_argument('--port', type=int, default=None, help='Port to listen on (default: $PORT or 3000)')
    parser.add_argument(
        '--compress-level',
        dest='compressLevel',
        type=int,
        choices=range(0, 10),
        metavar='0-9',
        default=None,
        help='Deflate level for folder downloads (default: $PUBLISH_COMPRESS_LEVEL or 9)'
    )
    parser.add_argument(
        '--log-level',
        dest='logLevel',
        default=None,
        help='DEBUG, INFO, WARNING, ERROR or a JSON logging config file (default: $PUBLISH_LOGGING_LEVEL)'
    )
    parser.add_argument('--version', action='store_true', help='Show version and exit')

    return parser
