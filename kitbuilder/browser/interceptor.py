"""
Media Interceptor: capture an MP3 as the browser streams it.

The sample pages never expose a stable, directly fetchable media URL; the
player streams it progressively. So we watch the network instead:

1. Network.responseReceived for a .mp3 URL with an audio/mpeg type
   -> remember request id -> URL in a correlation table
2. Network.loadingFinished for a remembered request id
   -> drop it from the table and start a BodyFetch for that id
3. The first body that arrives goes through a capacity-one handoff to the
   caller, who is waiting with an overall timeout.

Each BodyFetch runs on its own daemon thread with a wall-clock deadline. Once
the deadline passes (or the call returns) the fetch can no longer deliver.
A DevTools call already in flight can't be interrupted from Python, so the
thread is handed to the Session, which joins it after quitting the driver.

Each intercept_one call gets its own table and handoff. Both are closed
before the call returns.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional

from ..errors import InterceptTimeout, PayloadTooSmall, PayloadWriteError
from .events import BrowserEvent, LoadingFinished, ResponseReceived

logger = logging.getLogger(__name__)

AUDIO_URL_MARKER = ".mp3"
AUDIO_MIME_TYPE = "audio/mpeg"
MIN_PAYLOAD_BYTES = 1000


def is_audio_response(event: ResponseReceived) -> bool:
    return AUDIO_URL_MARKER in event.url and event.mime_type == AUDIO_MIME_TYPE


class Handoff:
    """
    Capacity-one channel from the event side to the waiting caller.

    offer() never blocks: it returns False when the slot is already full or
    the handoff has been taken/closed. take() waits up to a timeout and
    closes the handoff, so at most one payload is ever delivered.
    """

    def __init__(self):
        self._slot: "queue.Queue[bytes]" = queue.Queue(maxsize=1)
        self._lock = threading.Lock()
        self._closed = False

    def offer(self, payload: bytes) -> bool:
        with self._lock:
            if self._closed:
                return False
            try:
                self._slot.put_nowait(payload)
            except queue.Full:
                return False
            return True

    def take(self, timeout: float) -> bytes:
        """Raises queue.Empty on timeout."""
        try:
            return self._slot.get(timeout=timeout)
        finally:
            self.close()

    def close(self) -> None:
        with self._lock:
            self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed


class CorrelationTable:
    """
    request id -> candidate media URL, guarded by one lock.

    resolve() removes the entry and runs the callback while still holding
    the lock, so a request id that the engine reuses can't race the removal
    against the spawned body fetch. The lock is reentrant: callbacks may
    read the table.

    Once closed, track() is a no-op, so a handler that was mid-dispatch when
    the owning call returned can't leave entries behind.
    """

    def __init__(self):
        self._entries: Dict[str, str] = {}
        self._lock = threading.RLock()
        self._closed = False

    def track(self, request_id: str, url: str) -> bool:
        with self._lock:
            if self._closed:
                return False
            self._entries[request_id] = url
            return True

    def resolve(self, request_id: str, on_match: Callable[[str, str], None]) -> bool:
        with self._lock:
            if self._closed:
                return False
            url = self._entries.pop(request_id, None)
            if url is None:
                return False
            on_match(request_id, url)
            return True

    def clear(self) -> int:
        with self._lock:
            n = len(self._entries)
            self._entries.clear()
            return n

    def close(self) -> int:
        """Stop accepting entries and drop the ones left. Returns how many were dropped."""
        with self._lock:
            self._closed = True
            return self.clear()

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, request_id: str) -> bool:
        with self._lock:
            return request_id in self._entries


class BodyFetch:
    """
    One response-body fetch with its own deadline.

    States: running -> delivered | failed | expired | cancelled. Only the
    first transition counts, so a body that shows up after the deadline or
    after cancel() is dropped.
    """

    RUNNING = "running"

    def __init__(
        self,
        request_id: str,
        url: str,
        fetch: Callable[[str], bytes],
        deliver: Callable[[bytes], None],
        deadline: float,
    ):
        self.request_id = request_id
        self.url = url
        self.deadline = deadline
        self._fetch = fetch
        self._deliver = deliver
        self._lock = threading.Lock()
        self._state = self.RUNNING
        self.thread = threading.Thread(target=self._run, name=f"body-fetch-{request_id}", daemon=True)
        self._timer = threading.Timer(deadline, self._expire)
        self._timer.daemon = True

    @property
    def state(self) -> str:
        return self._state

    def start(self) -> None:
        self._timer.start()
        self.thread.start()

    def _transition(self, state: str) -> bool:
        with self._lock:
            if self._state != self.RUNNING:
                return False
            self._state = state
        self._timer.cancel()
        return True

    def _run(self) -> None:
        try:
            body = self._fetch(self.request_id)
        except Exception as e:
            # thread boundary: nothing above us to propagate to
            if self._transition("failed"):
                logger.warning(f"[INTERCEPT] ERROR getting MP3 body for {self.url}: {e}")
            return

        if not self._transition("delivered"):
            logger.debug(f"[INTERCEPT] Body for {self.request_id} arrived after fetch was {self._state}, dropped")
            return
        logger.debug(f"[INTERCEPT] Got MP3 body: {len(body)} bytes")
        self._deliver(body)

    def _expire(self) -> None:
        if self._transition("expired"):
            logger.warning(f"[INTERCEPT] Body fetch for {self.request_id} exceeded {self.deadline:.1f}s, dropped")

    def cancel(self) -> None:
        self._transition("cancelled")


class MediaInterceptor:
    """
    Downloads one audio payload per navigation by network interception.

    Args:
        timeout: Overall seconds to wait for a payload after settling
        body_timeout: Deadline of each body fetch
        settle: Pause after navigation so the player starts loading
        min_bytes: Smaller payloads are treated as error/decoy responses
        sleep: Sleep function (injectable for tests)
    """

    def __init__(
        self,
        timeout: float = 10.0,
        body_timeout: float = 5.0,
        settle: float = 3.0,
        min_bytes: int = MIN_PAYLOAD_BYTES,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.timeout = timeout
        self.body_timeout = body_timeout
        self.settle = settle
        self.min_bytes = min_bytes
        self._sleep = sleep

    def intercept_one(
        self,
        session,
        page_url: str,
        target: Path,
        table: Optional[CorrelationTable] = None,
    ) -> int:
        """
        Navigate to page_url, capture the first audio body and write it to target.

        Args:
            session: Open Session
            page_url: Sample page / media URL to load
            target: Output file path (parent directories are created)
            table: Correlation table to use; a fresh one by default.
                It is closed on return.

        Returns:
            Number of bytes written

        Raises:
            NavigationError, InterceptTimeout, PayloadTooSmall, PayloadWriteError
        """
        table = table if table is not None else CorrelationTable()
        handoff = Handoff()
        cancelled = threading.Event()
        fetches: List[BodyFetch] = []

        def deliver(body: bytes) -> None:
            if not handoff.offer(body):
                logger.debug("[INTERCEPT] Handoff already has data, skipping")

        def spawn(request_id: str, url: str) -> None:
            if cancelled.is_set():
                return
            logger.debug(f"[INTERCEPT] MP3 loading finished: RequestID={request_id} URL={url}")
            fetch = BodyFetch(request_id, url, session.get_response_body, deliver, self.body_timeout)
            fetches.append(fetch)
            fetch.start()

        def on_event(event: BrowserEvent) -> None:
            if isinstance(event, ResponseReceived):
                if is_audio_response(event):
                    logger.debug(f"[INTERCEPT] MP3 response: RequestID={event.request_id} URL={event.url}")
                    table.track(event.request_id, event.url)
            elif isinstance(event, LoadingFinished):
                table.resolve(event.request_id, spawn)

        session.enable_network()
        session.events.flush()
        subscription = session.events.subscribe(on_event, kinds=(ResponseReceived, LoadingFinished))
        try:
            session.navigate(page_url)
            self._sleep(self.settle)
            try:
                payload = handoff.take(timeout=self.timeout)
            except queue.Empty:
                raise InterceptTimeout(self.timeout, len(table)) from None
        finally:
            subscription.close()
            # spawns happen inside resolve(), so after close() the list is final
            table.close()
            cancelled.set()
            handoff.close()
            for fetch in fetches:
                fetch.cancel()
                if fetch.thread.is_alive():
                    session.adopt_thread(fetch.thread)

        if len(payload) < self.min_bytes:
            raise PayloadTooSmall(len(payload), self.min_bytes)

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(payload)
        except OSError as e:
            raise PayloadWriteError(f"could not write {target}: {e}") from e

        logger.info(f"[INTERCEPT] Downloaded: {target.stem} -> {target} ({len(payload) / 1024:.2f} KB)")
        return len(payload)
