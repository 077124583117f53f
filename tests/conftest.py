import base64
import json
import threading

import pytest
from selenium.common.exceptions import NoSuchElementException, WebDriverException

from kitbuilder.browser.session import BrowserProfile, Session

ENV_VARS = (
    "FREESOUND_CLIENT_ID",
    "FREESOUND_CLIENT_SECRET",
    "GOOGLE_CHROME_PATH",
    "KITBUILDER_OUTPUT_DIR",
    "KITBUILDER_HEADLESS",
    "KITBUILDER_CONFIG",
)


def perf_entry(method, params):
    """One ChromeDriver performance-log entry."""
    return {
        "message": json.dumps({"message": {"method": method, "params": params}, "webview": "ABC"}),
        "level": "INFO",
        "timestamp": 0,
    }


def response_received(request_id, url, mime_type="audio/mpeg"):
    return perf_entry(
        "Network.responseReceived",
        {"requestId": request_id, "response": {"url": url, "mimeType": mime_type}},
    )


def loading_finished(request_id):
    return perf_entry("Network.loadingFinished", {"requestId": request_id})


def dom_content_fired():
    return perf_entry("Page.domContentEventFired", {"timestamp": 1.0})


def b64_body(data):
    return {"body": base64.b64encode(data).decode("ascii"), "base64Encoded": True}


class FakeElement:
    def __init__(self, html):
        self.html = html

    def get_attribute(self, name):
        return self.html if name == "innerHTML" else None


class FakeDriver:
    """Stands in for selenium's Chrome driver; replays queued performance-log entries."""

    def __init__(self):
        self.title = ""
        self.visited = []
        self.cdp_calls = []
        self.scripts = []
        self.bodies = {}
        self.on_get = {}
        self.elements = {}
        self.script_result = None
        self.fail_get = None
        self.quit_calls = 0
        self.hang = set()
        self.release = threading.Event()
        self.inflight = 0
        self._log = []
        self._lock = threading.Lock()

    def queue(self, *entries):
        with self._lock:
            self._log.extend(entries)

    def get(self, url):
        if self.fail_get is not None:
            raise self.fail_get
        self.visited.append(url)
        self.queue(*self.on_get.get(url, []))

    def get_log(self, kind):
        assert kind == "performance"
        with self._lock:
            entries, self._log = self._log, []
        return entries

    def execute_cdp_cmd(self, cmd, params):
        self.cdp_calls.append((cmd, params))
        if cmd == "Network.getResponseBody":
            if params["requestId"] in self.hang:
                self._block()
            body = self.bodies.get(params["requestId"])
            if body is None:
                raise WebDriverException("No resource with given identifier found")
            return body
        return {}

    def execute_script(self, script, *args):
        self.scripts.append(script)
        return self.script_result

    def find_element(self, by, value):
        if value not in self.elements:
            raise NoSuchElementException(f"no element {value}")
        return FakeElement(self.elements[value])

    def _block(self):
        """Hold a body fetch until released; quitting fails it like a dead chromedriver would."""
        with self._lock:
            self.inflight += 1
        try:
            self.release.wait()
        finally:
            with self._lock:
                self.inflight -= 1
        if self.quit_calls:
            raise WebDriverException("invalid session id")

    def quit(self):
        self.quit_calls += 1
        self.release.set()

    def cdp_commands(self, name):
        return [params for cmd, params in self.cdp_calls if cmd == name]


class FakeSession:
    """Page-level stand-in for Session used by the gate, fetcher and builder tests."""

    def __init__(self, titles=("Samples | SampleFocus",), flags=(True,), html="", title_error=None):
        self._titles = list(titles)
        self._flags = list(flags)
        self.html = html
        self.title_error = title_error
        self.visited = []
        self.close_calls = 0
        self.title_calls = 0

    def navigate(self, url):
        self.visited.append(url)

    def title(self):
        self.title_calls += 1
        if self.title_error is not None and self.title_calls == 2:
            raise self.title_error
        if len(self._titles) > 1:
            return self._titles.pop(0)
        return self._titles[0]

    def evaluate(self, expression):
        flag = self._flags.pop(0) if len(self._flags) > 1 else self._flags[0]
        if isinstance(flag, Exception):
            raise flag
        return flag

    def inner_html(self, selector):
        return self.html

    def close(self):
        self.close_calls += 1


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def driver():
    return FakeDriver()


@pytest.fixture
def live_session(driver):
    """Session over FakeDriver with the event pump running fast."""
    profile = BrowserProfile(cookie_file=None, event_poll_interval=0.01)
    session = Session.create(profile, driver_factory=lambda p: driver)
    yield session
    session.close()


@pytest.fixture
def no_sleep():
    calls = []

    def sleep(seconds):
        calls.append(seconds)

    sleep.calls = calls
    return sleep
