"""
Browser Module: Chrome-driven acquisition for SampleFocus

SampleFocus renders its catalog client-side, sits behind Cloudflare and
streams audio through its player, so everything here goes through a real
browser session.

Components:
- Session: Chrome context with anti-automation profile, cookies, stealth hook
- NetworkEventStream: pub/sub over DevTools network/page events
- ChallengeGate: waits out challenge interstitials
- CatalogFetcher: extracts the React-rendered sample list
- MediaInterceptor: captures MP3 bodies by request-id correlation
"""

from .session import BrowserProfile, Session, load_cookies, make_driver
from .events import (
    DomContentEventFired,
    LoadingFinished,
    NetworkEventStream,
    ResponseReceived,
    Subscription,
)
from .polling import PollTimeout, poll_until
from .challenge import ChallengeGate, is_challenge_title
from .catalog import CatalogFetcher, parse_catalog, search_url
from .interceptor import CorrelationTable, Handoff, MediaInterceptor

__all__ = [
    "BrowserProfile",
    "Session",
    "load_cookies",
    "make_driver",
    "DomContentEventFired",
    "LoadingFinished",
    "NetworkEventStream",
    "ResponseReceived",
    "Subscription",
    "PollTimeout",
    "poll_until",
    "ChallengeGate",
    "is_challenge_title",
    "CatalogFetcher",
    "parse_catalog",
    "search_url",
    "CorrelationTable",
    "Handoff",
    "MediaInterceptor",
]
