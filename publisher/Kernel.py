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
import logging
import threading

# Error reporting is disabled unless PUBLISH_SENTRY_DSN is set in the environment.
import sentry_sdk

from signalslot import Signal

from sentry_sdk.integrations.logging import SentryHandler, LoggingIntegration
from sentry_sdk.integrations import atexit as sentryAtexit

PUBLIC_VERSION = '1.0.0'

# Map string levels to logging constants for standard level names
LOG_LEVEL_MAPPING = {'DEBUG': logging.DEBUG, 'INFO': logging.INFO, 'WARNING': logging.WARNING, 'ERROR': logging.ERROR}


def configureGlobalLogLevel(logLevel):
    """
    Configure the global logging level for the application.
    This affects all loggers created via getLogger().

    Args:
        logLevel: Logging level (logging.DEBUG, logging.INFO, etc.)
    """
    rootLogger = logging.getLogger()
    rootLogger.setLevel(logLevel)

    formatter = logging.Formatter('%(asctime)s [%(levelname)s] %(name)s: %(message)s')

    # Add console handler if none exists
    if not rootLogger.handlers:
        consoleHandler = logging.StreamHandler()
        consoleHandler.setLevel(logLevel)
        consoleHandler.setFormatter(formatter)
        rootLogger.addHandler(consoleHandler)
    else:
        # Update existing handlers
        for handler in rootLogger.handlers:
            if isinstance(handler, logging.StreamHandler) and not isinstance(handler, SentryHandler):
                handler.setLevel(logLevel)
                handler.setFormatter(formatter)


if os.getenv('PUBLISH_LOGGING_LEVEL', '').upper() in LOG_LEVEL_MAPPING:
    configureGlobalLogLevel(LOG_LEVEL_MAPPING[os.environ['PUBLISH_LOGGING_LEVEL'].upper()])


def _initSentry():
    sentryDsn = os.getenv('PUBLISH_SENTRY_DSN')
    if not sentryDsn:
        return False

    # Suppress "sentry is attempting to send pending events..." on exit
    sentryAtexit.default_callback = lambda pending, timeout: None

    sentry_sdk.init(
        dsn=sentryDsn,
        release=PUBLIC_VERSION,
        default_integrations=False,
        integrations=[
            LoggingIntegration(),
            sentryAtexit.AtexitIntegration(),
        ],
    )
    return True


def getLogger(name, version=PUBLIC_VERSION):
    """
    Get a logger with Sentry integration. Sentry itself is only initialised once,
    and only when a DSN is configured; the handler is a no-op otherwise.

    Args:
        name: Logger name
        version: Version string for logging context
    """
    try:
        sentryInitialized = False
        if not sentry_sdk.get_client().is_active():
            sentryInitialized = _initSentry()

        logger = logging.getLogger(name)

        # Add Sentry handler if not already present
        if not any(isinstance(h, SentryHandler) for h in logger.handlers):
            logger.addHandler(SentryHandler(level=logging.ERROR))

        adapter = logging.LoggerAdapter(logger, {'version': version or 'unknown'})

        if sentryInitialized:
            adapter.debug('Sentry initialized')

        return adapter

    except Exception as e:
        fallbackLogger = logging.getLogger(name)

        # If Sentry setup fails, log the error and continue with standard logging
        fallbackLogger.warning(f"Failed to initialize Sentry: {e}")

        return fallbackLogger


class Singleton:
    """
    Thread-safe singleton base class that can be inherited by other classes.
    Subclasses override initialize() for custom initialization.
    """

    _instances = {}
    _lock = threading.Lock()

    def __new__(cls, *args, **kwargs):
        if cls not in cls._instances:
            with cls._lock:
                if cls not in cls._instances:
                    cls._instances[cls] = super().__new__(cls)
        return cls._instances[cls]

    def __init__(self, *args, **kwargs):
        if not hasattr(self, '_initialized'):
            self.initialize(*args, **kwargs)
            self._initialized = True

    def initialize(self, *args, **kwargs):
        pass

    @classmethod
    def getInstance(cls):
        if cls not in cls._instances:
            cls()
        return cls._instances[cls]


class EventService(Singleton):
    """
    Dispatches request lifecycle events to observers. Thread-safe singleton
    backed by 'signalslot' signals; observers must accept keyword arguments.
    """

    def initialize(self):
        self.signals = {}

    def reset(self):
        """
        Disconnect every observer but keep events registered. Test suites use
        this for isolation.
        """
        for event in list(self.signals):
            self.signals[event] = Signal(threadsafe=True)

    def isRegistered(self, event):
        return event in self.signals

    def register(self, event):
        if self.isRegistered(event):
            return False
        self.signals[event] = Signal(threadsafe=True)
        return True

    def trigger(self, event, **kwargs):
        """
        Trigger an event, calling all connected observers (slots).
        Observer failures are logged and never reach the caller.
        """
        signal = self.signals.get(event)
        if signal is None:
            return

        try:
            signal.emit(**kwargs)
        except Exception as e:
            logger.exception(f"Observer of '{event}' failed: {e}")

    def subscribe(self, event, observer):
        if not self.isRegistered(event):
            raise KeyError(f"You must register event '{event}' first.")

        signal = self.signals[event]
        if not signal.is_connected(observer):
            signal.connect(observer)

    def unsubscribe(self, event, observer):
        signal = self.signals.get(event)
        if signal is not None and signal.is_connected(observer):
            signal.disconnect(observer)


class Event:
    """ Simple Event wrapper"""

    def __init__(self, key):
        self.key = key
        self.eventService = EventService.getInstance()

    def subscribe(self, observer):
        return self.eventService.subscribe(self.key, observer)

    def unsubscribe(self, observer):
        return self.eventService.unsubscribe(self.key, observer)

    def trigger(self, **kwargs):
        return self.eventService.trigger(self.key, **kwargs)


class PublishEvent:
    fileDownload = Event('/download/file')
    archiveStart = Event('/download/archive/start')
    archiveComplete = Event('/download/archive/complete')
    archiveAbort = Event('/download/archive/abort')
    listingRender = Event('/listing/render')


logger = getLogger(__name__)

eventService = EventService.getInstance()

eventService.register(PublishEvent.fileDownload.key)
eventService.register(PublishEvent.archiveStart.key)
eventService.register(PublishEvent.archiveComplete.key)
eventService.register(PublishEvent.archiveAbort.key)
eventService.register(PublishEvent.listingRender.key)
