from conftest import dom_content_fired, loading_finished, perf_entry, response_received
from kitbuilder.browser.events import (
    DomContentEventFired,
    LoadingFinished,
    NetworkEventStream,
    ResponseReceived,
    parse_log_entry,
)


def test_parse_response_received():
    event = parse_log_entry(response_received("42.1", "https://cdn/x.mp3"))
    assert event == ResponseReceived(request_id="42.1", url="https://cdn/x.mp3", mime_type="audio/mpeg")


def test_parse_loading_finished_and_dom_content():
    assert parse_log_entry(loading_finished("7")) == LoadingFinished(request_id="7")
    assert isinstance(parse_log_entry(dom_content_fired()), DomContentEventFired)


def test_parse_ignores_other_methods_and_garbage():
    assert parse_log_entry(perf_entry("Network.requestWillBeSent", {"requestId": "1"})) is None
    assert parse_log_entry({"message": "not json"}) is None
    assert parse_log_entry({}) is None


def test_pump_publishes_to_matching_subscribers(driver):
    stream = NetworkEventStream(driver)
    responses, everything = [], []
    stream.subscribe(responses.append, kinds=(ResponseReceived,))
    stream.subscribe(everything.append)

    driver.queue(response_received("1", "https://a.mp3"), loading_finished("1"), dom_content_fired())
    assert stream.pump() == 3

    assert [e.request_id for e in responses] == ["1"]
    assert len(everything) == 3


def test_closed_subscription_gets_nothing(driver):
    stream = NetworkEventStream(driver)
    seen = []
    sub = stream.subscribe(seen.append)
    sub.close()
    driver.queue(loading_finished("1"))
    stream.pump()
    assert seen == []
    assert stream.subscriber_count == 0


def test_subscription_context_manager(driver):
    stream = NetworkEventStream(driver)
    with stream.subscribe(lambda e: None) as sub:
        assert stream.subscriber_count == 1
    assert sub.closed
    assert stream.subscriber_count == 0


def test_flush_discards_buffered_events(driver):
    stream = NetworkEventStream(driver)
    seen = []
    stream.subscribe(seen.append)
    driver.queue(loading_finished("old"))
    assert stream.flush() == 1
    stream.pump()
    assert seen == []


def test_failing_handler_does_not_stop_others(driver):
    stream = NetworkEventStream(driver)
    seen = []

    def broken(event):
        raise ValueError("boom")

    stream.subscribe(broken)
    stream.subscribe(seen.append)
    driver.queue(loading_finished("1"))
    stream.pump()
    assert len(seen) == 1


def test_stop_closes_subscriptions(driver):
    stream = NetworkEventStream(driver, poll_interval=0.01)
    sub = stream.subscribe(lambda e: None)
    stream.start()
    assert stream.running
    stream.stop()
    assert not stream.running
    assert sub.closed
