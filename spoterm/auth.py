"""OAuth authorization-code flow for the Spotify Web API.

Tokens are cached on disk so the browser round trip only happens on first
use, or after the refresh token has been revoked.
"""

from __future__ import annotations

import asyncio
import json
import logging
import secrets
import time
import webbrowser
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any
from urllib.parse import urlencode, urlparse

import aiohttp
from aiohttp import web
from rich.console import Console

logger = logging.getLogger(__name__)

AUTHORIZE_URL = "https://accounts.spotify.com/authorize"
TOKEN_URL = "https://accounts.spotify.com/api/token"
DEFAULT_REDIRECT_URI = "http://localhost:8888/callback"
TOKEN_CACHE_FILE = ".spotify_token_cache.json"
CALLBACK_TIMEOUT_SECONDS = 300.0

# https://developer.spotify.com/documentation/general/guides/scopes/
SCOPES: tuple[str, ...] = (
    # Listening History
    "user-top-read",
    "user-read-recently-played",
    # Spotify Connect
    "user-read-playback-state",
    "user-read-currently-playing",
    "user-modify-playback-state",
    # Library
    "user-library-modify",
    "user-library-read",
    # Playback
    "streaming",
    "app-remote-control",
    "user-read-private",
    "user-read-birthdate",
    "user-read-email",
    # Follow
    "user-follow-modify",
    "user-follow-read",
    # Playlists
    "playlist-modify-public",
    "playlist-read-collaborative",
    "playlist-read-private",
    "playlist-modify-private",
)

_CALLBACK_PAGE = """<!DOCTYPE html><html><head><meta charset="UTF-8">
<title>spoterm</title></head><body style="font-family:sans-serif;text-align:center">
<h1>{title}</h1><p>{message}</p></body></html>"""


class AuthError(Exception):
    """Raised when a token cannot be obtained."""


@dataclass
class TokenInfo:
    """An access token and the data needed to refresh it."""

    access_token: str
    refresh_token: str | None
    expires_at: float
    scope: str = ""
    token_type: str = "Bearer"

    def is_expired(self, margin: float = 60.0) -> bool:
        """Check whether the token expires within ``margin`` seconds."""
        return time.time() >= self.expires_at - margin

    @classmethod
    def from_response(cls, data: dict[str, Any], refresh_token: str | None = None) -> TokenInfo:
        """Build token info from a token endpoint response.

        The refresh grant may omit ``refresh_token``; the previous one stays valid then.
        """
        return cls(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token") or refresh_token,
            expires_at=time.time() + int(data.get("expires_in", 3600)),
            scope=data.get("scope", ""),
            token_type=data.get("token_type", "Bearer"),
        )


def build_authorize_url(
    client_id: str, redirect_uri: str, scopes: tuple[str, ...], state: str
) -> str:
    """Build the URL the user visits to grant access."""
    query = urlencode(
        {
            "client_id": client_id,
            "response_type": "code",
            "redirect_uri": redirect_uri,
            "scope": " ".join(scopes),
            "state": state,
        }
    )
    return f"{AUTHORIZE_URL}?{query}"


class TokenCache:
    """JSON file holding the last token obtained."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> TokenInfo | None:
        """Load the cached token, or None if missing or unreadable."""
        if not self._path.exists():
            logger.debug("Token cache does not exist: %s", self._path)
            return None
        try:
            data = json.loads(self._path.read_text())
            return TokenInfo(
                access_token=data["access_token"],
                refresh_token=data.get("refresh_token"),
                expires_at=float(data["expires_at"]),
                scope=data.get("scope", ""),
                token_type=data.get("token_type", "Bearer"),
            )
        except (json.JSONDecodeError, KeyError, TypeError, ValueError, OSError) as e:
            logger.warning("Failed to load token cache from %s: %s", self._path, e)
            return None

    def save(self, token: TokenInfo) -> None:
        """Write the token to disk."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(asdict(token), indent=2) + "\n")
            self._path.chmod(0o600)
            logger.debug("Saved token cache to %s", self._path)
        except OSError as e:
            logger.warning("Failed to save token cache to %s: %s", self._path, e)

    def clear(self) -> bool:
        """Delete the cache file. Returns True if a file was removed."""
        try:
            self._path.unlink()
        except FileNotFoundError:
            return False
        return True


class SpotifyOAuth:
    """Obtains, caches and refreshes access tokens."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        client_id: str,
        client_secret: str,
        cache: TokenCache,
        *,
        redirect_uri: str = DEFAULT_REDIRECT_URI,
        scopes: tuple[str, ...] = SCOPES,
        token_url: str = TOKEN_URL,
        console: Console | None = None,
        open_browser: bool = True,
    ) -> None:
        """Initialize the OAuth helper.

        Args:
            session: HTTP session used for the token endpoint.
            client_id: Application client ID.
            client_secret: Application client secret.
            cache: Where tokens are persisted.
            redirect_uri: Registered redirect URI; the callback server binds to it.
            scopes: Authorization scopes to request.
            token_url: Token endpoint (overridable for tests).
            console: Console used to show the authorize URL.
            open_browser: Whether to try opening the authorize URL in a browser.
        """
        self._session = session
        self._client_id = client_id
        self._client_secret = client_secret
        self._cache = cache
        self._redirect_uri = redirect_uri
        self._scopes = scopes
        self._token_url = token_url
        self._console = console or Console(stderr=True)
        self._open_browser = open_browser
        self._token: TokenInfo | None = None
        self._lock = asyncio.Lock()
        # Cleared once the TUI owns the screen; a dead refresh token then fails fast
        self.interactive = True

    async def get_token(self) -> str:
        """Return a valid access token, refreshing or authorizing as needed."""
        async with self._lock:
            if self._token is None:
                self._token = self._cache.load()

            if self._token is not None and not self._token.is_expired():
                return self._token.access_token

            if self._token is not None and self._token.refresh_token:
                try:
                    await self._refresh(self._token.refresh_token)
                    return self._token.access_token
                except AuthError as e:
                    if not self.interactive:
                        raise
                    logger.warning("Token refresh failed, re-authorizing: %s", e)

            if not self.interactive:
                raise AuthError("Not authorized; run spoterm again to log in")
            code = await self._authorize()
            self._token = await self._request_token(
                {
                    "grant_type": "authorization_code",
                    "code": code,
                    "redirect_uri": self._redirect_uri,
                }
            )
            self._cache.save(self._token)
            return self._token.access_token

    async def refresh(self) -> str:
        """Force a refresh, e.g. after the API rejected the token."""
        async with self._lock:
            if self._token is None or not self._token.refresh_token:
                raise AuthError("No refresh token available")
            await self._refresh(self._token.refresh_token)
            return self._token.access_token

    async def _refresh(self, refresh_token: str) -> None:
        self._token = await self._request_token(
            {"grant_type": "refresh_token", "refresh_token": refresh_token},
            refresh_token=refresh_token,
        )
        self._cache.save(self._token)
        logger.info("Access token refreshed")

    async def _request_token(
        self, form: dict[str, str], refresh_token: str | None = None
    ) -> TokenInfo:
        auth = aiohttp.BasicAuth(self._client_id, self._client_secret)
        try:
            async with self._session.post(self._token_url, data=form, auth=auth) as resp:
                data = await resp.json(content_type=None)
                if resp.status >= 400:
                    message = data.get("error_description") or data.get("error") or resp.reason
                    raise AuthError(f"Token request failed ({resp.status}): {message}")
        except (aiohttp.ClientError, json.JSONDecodeError) as e:
            raise AuthError(f"Token request failed: {e}") from e
        return TokenInfo.from_response(data, refresh_token=refresh_token)

    async def _authorize(self) -> str:
        """Run the interactive flow and return the authorization code."""
        state = secrets.token_urlsafe(16)
        url = build_authorize_url(self._client_id, self._redirect_uri, self._scopes, state)

        self._console.print("Open this URL in your browser to authorize spoterm:")
        self._console.print(url, style="cyan", soft_wrap=True)
        if self._open_browser:
            webbrowser.open(url)

        return await wait_for_callback(self._redirect_uri, state)


async def wait_for_callback(
    redirect_uri: str, state: str, timeout: float = CALLBACK_TIMEOUT_SECONDS
) -> str:
    """Serve the redirect URI once and return the authorization code it receives."""
    parsed = urlparse(redirect_uri)
    host = parsed.hostname or "localhost"
    port = parsed.port or 80
    path = parsed.path or "/"

    loop = asyncio.get_running_loop()
    result: asyncio.Future[str] = loop.create_future()

    async def handle_callback(request: web.Request) -> web.Response:
        if request.query.get("state") != state:
            if not result.done():
                result.set_exception(AuthError("OAuth state mismatch"))
            return _page("Authorization failed", "State mismatch.", 400)
        if error := request.query.get("error"):
            if not result.done():
                result.set_exception(AuthError(f"Authorization denied: {error}"))
            return _page("Authorization failed", error, 400)
        code = request.query.get("code")
        if not code:
            return _page("Authorization failed", "Missing code.", 400)
        if not result.done():
            result.set_result(code)
        return _page("spoterm is authorized", "You can close this page.", 200)

    app = web.Application()
    app.router.add_get(path, handle_callback)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    try:
        await site.start()
        logger.info("Waiting for OAuth callback on %s", redirect_uri)
        try:
            return await asyncio.wait_for(result, timeout)
        except TimeoutError as e:
            raise AuthError("Timed out waiting for authorization") from e
    finally:
        await runner.cleanup()


def _page(title: str, message: str, status: int) -> web.Response:
    return web.Response(
        text=_CALLBACK_PAGE.format(title=title, message=message),
        content_type="text/html",
        status=status,
    )
