"""
Scan event stream.

Progress snapshots and host records are delivered to registered
listeners synchronously, on the event loop running the scan, in the
order the underlying probes complete. The completed counter carried by
successive progress events never decreases.

Listeners are fire-and-forget: an exception raised by a listener is
logged and does not affect the scan or other listeners.
"""

from __future__ import annotations

import logging
from typing import Callable

from ._types import HostRecord, ScanProgress

logger = logging.getLogger(__name__)

ProgressListener = Callable[[ScanProgress], None]
HostListener = Callable[[HostRecord], None]


class ScanEvents:
    """Observer list for progress and host-discovered events."""

    def __init__(self) -> None:
        self._progress_listeners: list[ProgressListener] = []
        self._host_listeners: list[HostListener] = []

    def add_progress_listener(self, listener: ProgressListener) -> None:
        self._progress_listeners.append(listener)

    def remove_progress_listener(self, listener: ProgressListener) -> None:
        if listener in self._progress_listeners:
            self._progress_listeners.remove(listener)

    def add_host_listener(self, listener: HostListener) -> None:
        self._host_listeners.append(listener)

    def remove_host_listener(self, listener: HostListener) -> None:
        if listener in self._host_listeners:
            self._host_listeners.remove(listener)

    def emit_progress(self, progress: ScanProgress) -> None:
        for listener in list(self._progress_listeners):
            try:
                listener(progress)
            except Exception as e:
                logger.error(f"Progress listener failed: {e}")

    def emit_host(self, host: HostRecord) -> None:
        for listener in list(self._host_listeners):
            try:
                listener(host)
            except Exception as e:
                logger.error(f"Host listener failed for {host.address}: {e}")
