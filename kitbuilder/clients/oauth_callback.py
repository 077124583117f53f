"""
Freesound OAuth2 authorization-code flow with a local callback server.

Flow:
1. Start a small FastAPI app on localhost:3000 in a background thread
2. Open the user's browser at /oauth2/authorize?client_id=...&response_type=code
3. Freesound redirects to http://localhost:3000/callback?code=...
4. The callback exchanges the code for an access token and hands it back
5. The server shuts down once the token (or an error) arrives

The redirect URI registered for the Freesound API credential must point at
the callback URL.
"""

from __future__ import annotations

import logging
import threading
import webbrowser
from typing import Awaitable, Callable, Optional
from urllib.parse import urlencode

import httpx
import uvicorn
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError

from ..errors import AuthError
from ..schemas import TokenResponse
from .freesound_client import FREESOUND_BASE_URL

logger = logging.getLogger(__name__)

CALLBACK_HOST = "127.0.0.1"
CALLBACK_PORT = 3000
AUTH_TIMEOUT_S = 300.0

TokenExchanger = Callable[[str], Awaitable[str]]


def authorize_url(client_id: str, base_url: str = FREESOUND_BASE_URL) -> str:
    query = urlencode({"client_id": client_id, "response_type": "code"})
    return f"{base_url}/oauth2/authorize?{query}"


def make_token_exchanger(
    client_id: str,
    client_secret: str,
    base_url: str = FREESOUND_BASE_URL,
    timeout: float = 10.0,
) -> TokenExchanger:
    """Build the coroutine that trades an authorization code for an access token."""

    async def exchange(code: str) -> str:
        async with httpx.AsyncClient(timeout=timeout) as client:
            r = await client.post(
                f"{base_url}/oauth2/access_token",
                data={
                    "client_id": client_id,
                    "client_secret": client_secret,
                    "grant_type": "authorization_code",
                    "code": code,
                },
            )
        if r.status_code != 200:
            raise AuthError(f"token exchange failed: HTTP {r.status_code}")
        try:
            return TokenResponse.model_validate(r.json()).access_token
        except (ValueError, ValidationError) as e:
            raise AuthError(f"there was an error decoding the token response: {e}") from e

    return exchange


class OAuthCallbackServer:
    """
    Waits for exactly one OAuth redirect and keeps the resulting token.

    Usage:
        server = OAuthCallbackServer(make_token_exchanger(cid, secret))
        server.start()
        webbrowser.open(authorize_url(cid))
        token = server.wait_for_token(timeout=300)
        server.stop()
    """

    def __init__(
        self,
        exchange: TokenExchanger,
        host: str = CALLBACK_HOST,
        port: int = CALLBACK_PORT,
    ):
        self.exchange = exchange
        self.host = host
        self.port = port
        self.access_token: Optional[str] = None
        self.error: Optional[str] = None
        self._done = threading.Event()
        self._server: Optional[uvicorn.Server] = None
        self._thread: Optional[threading.Thread] = None
        self.app = self._build_app()

    def _build_app(self) -> FastAPI:
        app = FastAPI(title="KitBuilder OAuth Callback", docs_url=None, redoc_url=None)

        @app.get("/callback", response_class=PlainTextResponse)
        async def callback(code: Optional[str] = None, error: Optional[str] = None):
            if error or not code:
                self.error = error or "missing authorization code"
                self._done.set()
                return PlainTextResponse(f"Authentication failed: {self.error}", status_code=400)

            try:
                self.access_token = await self.exchange(code)
            except (AuthError, httpx.HTTPError) as e:
                logger.error(f"[AUTH] Token exchange failed: {e}")
                self.error = str(e)
                self._done.set()
                return PlainTextResponse(f"Authentication failed: {e}", status_code=502)

            self._done.set()
            logger.info("[AUTH] Authentication with FreeSound complete.")
            return "Authentication successful! You can close this window."

        return app

    def start(self) -> None:
        config = uvicorn.Config(self.app, host=self.host, port=self.port, log_level="warning")
        self._server = uvicorn.Server(config)
        self._thread = threading.Thread(target=self._server.run, name="oauth-callback", daemon=True)
        self._thread.start()
        logger.info(f"[AUTH] Callback server listening on http://{self.host}:{self.port}/callback")

    def wait_for_token(self, timeout: float = AUTH_TIMEOUT_S) -> str:
        """
        Block until the callback has run.

        Raises:
            AuthError: On timeout or a failed exchange
        """
        if not self._done.wait(timeout):
            raise AuthError(f"no OAuth callback received within {timeout:.0f}s")
        if not self.access_token:
            raise AuthError(self.error or "authorization failed")
        return self.access_token

    def stop(self) -> None:
        if self._server is not None:
            self._server.should_exit = True
        if self._thread is not None:
            self._thread.join(timeout=5)
        self._server = None
        self._thread = None


def authorize(client_id: str, client_secret: str, timeout: float = AUTH_TIMEOUT_S) -> str:
    """
    Run the full authorization-code flow and return an access token.

    Raises:
        AuthError: If credentials are missing or no token was obtained
    """
    if not client_id or not client_secret:
        raise AuthError("client_id and client_secret are required for Freesound (set FREESOUND_CLIENT_ID / FREESOUND_CLIENT_SECRET)")

    server = OAuthCallbackServer(make_token_exchanger(client_id, client_secret))
    server.start()
    try:
        url = authorize_url(client_id)
        logger.info(f"[AUTH] Opening browser for Freesound authorization: {url}")
        if not webbrowser.open(url):
            logger.warning(f"[AUTH] Could not open a browser; visit this URL manually: {url}")
        return server.wait_for_token(timeout)
    finally:
        server.stop()
