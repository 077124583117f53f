import logging

import pytest
from selenium.common.exceptions import WebDriverException

from conftest import FakeSession
from kitbuilder.browser.challenge import ChallengeGate, is_challenge_title
from kitbuilder.errors import ChallengeTimeout


def fast_gate(sleep, **kwargs):
    kwargs.setdefault("interval", 0.01)
    return ChallengeGate(sleep=sleep, **kwargs)


@pytest.mark.parametrize("title", [
    "Just a moment...",
    "Attention Required! | Cloudflare",
    "cloudflare",
    "JUST A MOMENT",
])
def test_challenge_titles_detected(title):
    assert is_challenge_title(title)


@pytest.mark.parametrize("title", ["Free Samples | SampleFocus", "", "Moments"])
def test_normal_titles_not_challenges(title):
    assert not is_challenge_title(title)


def test_clear_page_returns_without_waiting(no_sleep):
    session = FakeSession(titles=["Kick Samples | SampleFocus"])
    fast_gate(no_sleep).wait_until_clear(session)
    assert no_sleep.calls == []
    assert session.title_calls == 1


def test_waits_until_title_changes_then_settles(no_sleep):
    session = FakeSession(titles=["Just a moment..."] * 4 + ["Kick Samples | SampleFocus"])
    fast_gate(no_sleep).wait_until_clear(session)
    # initial read plus four rechecks, then the 2s settle
    assert session.title_calls == 5
    assert no_sleep.calls == [2.0]


def test_times_out_when_challenge_never_clears(no_sleep):
    gate = fast_gate(no_sleep, max_checks=20)
    with pytest.raises(ChallengeTimeout) as exc:
        gate.wait_until_clear(FakeSession(titles=["Attention Required! | Cloudflare"]))
    assert exc.value.waited_s == pytest.approx(0.2)
    assert exc.value.title == "Attention Required! | Cloudflare"
    assert isinstance(exc.value, TimeoutError)
    assert no_sleep.calls == []


def test_default_budget_is_sixty_one_second_checks():
    gate = ChallengeGate()
    assert gate.interval * gate.max_checks == 60


def test_title_error_during_wait_counts_as_still_challenged(no_sleep):
    titles = ["Just a moment...", "Just a moment...", "Samples"]
    session = FakeSession(titles=titles, title_error=WebDriverException("navigating"))
    fast_gate(no_sleep).wait_until_clear(session)
    # read 2 raised, read 3 still challenged, read 4 clear
    assert session.title_calls == 4
    assert no_sleep.calls == [2.0]


def test_progress_logged_every_five_checks(no_sleep, caplog):
    caplog.set_level(logging.INFO, logger="kitbuilder.browser.challenge")
    titles = ["Just a moment..."] * 12 + ["Samples"]
    fast_gate(no_sleep).wait_until_clear(FakeSession(titles=titles))
    progress = [r for r in caplog.records if "Still waiting" in r.getMessage()]
    assert len(progress) == 2
