"""
KitBuilder Client Modules

HTTP clients for the Freesound API and its OAuth login.
"""

from .freesound_client import FreesoundClient, FREESOUND_BASE_URL
from .oauth_callback import (
    OAuthCallbackServer,
    authorize,
    authorize_url,
    make_token_exchanger,
)

__all__ = [
    "FreesoundClient",
    "FREESOUND_BASE_URL",
    "OAuthCallbackServer",
    "authorize",
    "authorize_url",
    "make_token_exchanger",
]
