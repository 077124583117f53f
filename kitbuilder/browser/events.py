"""
Network Event Stream: publish/subscribe over the browser's DevTools events.

ChromeDriver buffers DevTools events in its "performance" log when the
session is created with goog:loggingPrefs. A background pump thread drains
that log and publishes the events we understand to subscribers:

    Network.responseReceived   -> ResponseReceived(request_id, url, mime_type)
    Network.loadingFinished    -> LoadingFinished(request_id)
    Page.domContentEventFired  -> DomContentEventFired(timestamp)

Handlers run on the pump thread, so they must not block. A subscription is
a handle; closing it stops delivery to that handler immediately.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Type, Union

from selenium.common.exceptions import WebDriverException

logger = logging.getLogger(__name__)

PERFORMANCE_LOG = "performance"


@dataclass(frozen=True)
class ResponseReceived:
    request_id: str
    url: str
    mime_type: str


@dataclass(frozen=True)
class LoadingFinished:
    request_id: str


@dataclass(frozen=True)
class DomContentEventFired:
    timestamp: Optional[float] = None


BrowserEvent = Union[ResponseReceived, LoadingFinished, DomContentEventFired]
EventHandler = Callable[[BrowserEvent], None]


def parse_log_entry(entry: Dict[str, Any]) -> Optional[BrowserEvent]:
    """
    Convert one performance-log entry into a BrowserEvent.

    Entries look like {"message": "<json>", "level": ..., "timestamp": ...}
    where the JSON holds {"message": {"method": ..., "params": {...}}}.

    Returns:
        The parsed event, or None for methods we don't track or malformed entries
    """
    try:
        msg = json.loads(entry["message"]).get("message", {})
    except (KeyError, TypeError, ValueError):
        return None

    method = msg.get("method")
    params = msg.get("params") or {}

    if method == "Network.responseReceived":
        response = params.get("response") or {}
        return ResponseReceived(
            request_id=str(params.get("requestId", "")),
            url=response.get("url", ""),
            mime_type=response.get("mimeType", ""),
        )
    if method == "Network.loadingFinished":
        return LoadingFinished(request_id=str(params.get("requestId", "")))
    if method == "Page.domContentEventFired":
        return DomContentEventFired(timestamp=params.get("timestamp"))
    return None


class Subscription:
    """Handle returned by NetworkEventStream.subscribe."""

    def __init__(
        self,
        stream: "NetworkEventStream",
        handler: EventHandler,
        kinds: Tuple[Type, ...],
    ):
        self._stream = stream
        self.handler = handler
        self.kinds = kinds
        self.closed = False

    def wants(self, event: BrowserEvent) -> bool:
        return not self.closed and (not self.kinds or isinstance(event, self.kinds))

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._stream._remove(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class NetworkEventStream:
    """
    Pumps the driver's performance log and fans events out to subscribers.

    Usage:
        stream = NetworkEventStream(driver)
        stream.start()
        with stream.subscribe(on_event, kinds=(ResponseReceived,)):
            driver.get(url)
        stream.stop()
    """

    def __init__(self, driver: Any, poll_interval: float = 0.1):
        self._driver = driver
        self.poll_interval = poll_interval
        self._subscriptions: List[Subscription] = []
        self._subs_lock = threading.Lock()
        self._pump_lock = threading.Lock()
        self._stopped = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def subscribe(self, handler: EventHandler, kinds: Iterable[Type] = ()) -> Subscription:
        sub = Subscription(self, handler, tuple(kinds))
        with self._subs_lock:
            self._subscriptions.append(sub)
        return sub

    def _remove(self, sub: Subscription) -> None:
        with self._subs_lock:
            if sub in self._subscriptions:
                self._subscriptions.remove(sub)

    @property
    def subscriber_count(self) -> int:
        with self._subs_lock:
            return len(self._subscriptions)

    def start(self) -> None:
        if self.running:
            return
        self._stopped.clear()
        self._thread = threading.Thread(
            target=self._run, name="network-event-pump", daemon=True
        )
        self._thread.start()

    def stop(self, timeout: float = 2.0) -> None:
        """Stop the pump thread and drop every subscription."""
        self._stopped.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)
        self._thread = None
        with self._subs_lock:
            for sub in self._subscriptions:
                sub.closed = True
            self._subscriptions.clear()

    def _run(self) -> None:
        while not self._stopped.wait(self.poll_interval):
            try:
                self.pump()
            except WebDriverException as e:
                if self._stopped.is_set():
                    break
                logger.debug(f"[EVENTS] Performance log read failed: {e}")

    def _read_log(self) -> List[Dict[str, Any]]:
        return self._driver.get_log(PERFORMANCE_LOG) or []

    def pump(self) -> int:
        """
        Drain the performance log once and publish what we understand.

        Returns:
            Number of events published
        """
        with self._pump_lock:
            entries = self._read_log()
            published = 0
            for entry in entries:
                event = parse_log_entry(entry)
                if event is not None:
                    self.publish(event)
                    published += 1
            return published

    def flush(self) -> int:
        """Discard everything buffered so far (events from earlier pages)."""
        with self._pump_lock:
            try:
                return len(self._read_log())
            except WebDriverException as e:
                logger.debug(f"[EVENTS] Flush failed: {e}")
                return 0

    def publish(self, event: BrowserEvent) -> None:
        with self._subs_lock:
            targets = [s for s in self._subscriptions if s.wants(event)]
        for sub in targets:
            # re-check: the subscription may have closed after the snapshot
            if sub.closed:
                continue
            try:
                sub.handler(event)
            except Exception as e:
                logger.warning(f"[EVENTS] Handler failed for {type(event).__name__}: {e}")
