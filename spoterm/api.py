"""Asynchronous client for the Spotify Web API."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, Protocol

import aiohttp

from spoterm.models import (
    Device,
    Page,
    PlayHistory,
    Playback,
    RepeatState,
    SavedTrack,
    saved_tracks_page,
)

logger = logging.getLogger(__name__)

API_BASE_URL = "https://api.spotify.com/v1"
REQUEST_TIMEOUT_SECONDS = 10
# Library endpoints accept at most 50 IDs per call
MAX_IDS_PER_REQUEST = 50


class TokenProvider(Protocol):
    async def get_token(self) -> str: ...

    async def refresh(self) -> str: ...


class SpotifyAPIError(Exception):
    """Raised when the Web API answers with an error status."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(f"{status}: {message}")
        self.status = status
        self.message = message


def _chunks(ids: Iterable[str], size: int = MAX_IDS_PER_REQUEST) -> Iterable[list[str]]:
    batch: list[str] = []
    for track_id in ids:
        batch.append(track_id)
        if len(batch) == size:
            yield batch
            batch = []
    if batch:
        yield batch


class SpotifyAPI:
    """Thin wrapper around the Web API endpoints spoterm uses."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        auth: TokenProvider,
        base_url: str = API_BASE_URL,
    ) -> None:
        """Initialize the API client.

        Args:
            session: Shared HTTP session.
            auth: Supplies bearer tokens and refreshes them on 401.
            base_url: API root (overridable for tests).
        """
        self._session = session
        self._auth = auth
        self._base_url = base_url.rstrip("/")

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_data: Any = None,
    ) -> Any:
        """Send a request and decode the JSON body (None for empty responses)."""
        url = f"{self._base_url}{path}"
        if params:
            params = {k: v for k, v in params.items() if v is not None}
        timeout = aiohttp.ClientTimeout(total=REQUEST_TIMEOUT_SECONDS)

        token = await self._auth.get_token()
        for attempt in range(2):
            headers = {"Authorization": f"Bearer {token}"}
            async with self._session.request(
                method, url, params=params, json=json_data, headers=headers, timeout=timeout
            ) as resp:
                if resp.status == 401 and attempt == 0:
                    logger.info("Access token rejected, refreshing")
                    token = await self._auth.refresh()
                    continue
                if resp.status >= 400:
                    message = await _error_message(resp)
                    logger.warning("Spotify %s %s -> %d: %s", method, path, resp.status, message)
                    raise SpotifyAPIError(resp.status, message)
                if resp.status == 204:
                    return None
                body = await resp.read()
                if not body:
                    return None
                return await resp.json(content_type=None)
        raise SpotifyAPIError(401, "Unauthorized")

    # Player

    async def current_playback(self) -> Playback | None:
        """Get the current playback context, or None when nothing is active."""
        data = await self._request("GET", "/me/player")
        return Playback.from_dict(data) if data else None

    async def devices(self) -> list[Device]:
        data = await self._request("GET", "/me/player/devices")
        return [Device.from_dict(d) for d in (data or {}).get("devices", [])]

    async def start_playback(
        self, device_id: str | None = None, uris: Iterable[str] | None = None
    ) -> None:
        """Resume playback, or start playing ``uris`` when given."""
        body = {"uris": list(uris)} if uris else None
        await self._request("PUT", "/me/player/play", params={"device_id": device_id}, json_data=body)

    async def pause_playback(self, device_id: str | None = None) -> None:
        await self._request("PUT", "/me/player/pause", params={"device_id": device_id})

    async def next_track(self, device_id: str | None = None) -> None:
        await self._request("POST", "/me/player/next", params={"device_id": device_id})

    async def previous_track(self, device_id: str | None = None) -> None:
        await self._request("POST", "/me/player/previous", params={"device_id": device_id})

    async def seek_track(self, position_ms: int, device_id: str | None = None) -> None:
        await self._request(
            "PUT",
            "/me/player/seek",
            params={"position_ms": max(0, position_ms), "device_id": device_id},
        )

    async def volume(self, volume_percent: int, device_id: str | None = None) -> None:
        volume_percent = max(0, min(100, volume_percent))
        await self._request(
            "PUT",
            "/me/player/volume",
            params={"volume_percent": volume_percent, "device_id": device_id},
        )

    async def shuffle(self, state: bool, device_id: str | None = None) -> None:
        await self._request(
            "PUT",
            "/me/player/shuffle",
            params={"state": "true" if state else "false", "device_id": device_id},
        )

    async def repeat(self, state: RepeatState, device_id: str | None = None) -> None:
        await self._request(
            "PUT", "/me/player/repeat", params={"state": state.value, "device_id": device_id}
        )

    async def transfer_playback(self, device_id: str, play: bool = False) -> None:
        await self._request("PUT", "/me/player", json_data={"device_ids": [device_id], "play": play})

    # History and library

    async def current_user_recently_played(self, limit: int = 50) -> list[PlayHistory]:
        data = await self._request("GET", "/me/player/recently-played", params={"limit": limit})
        return [PlayHistory.from_dict(item) for item in (data or {}).get("items", [])]

    async def current_user_saved_tracks(
        self, offset: int | None = None, limit: int = 50
    ) -> Page[SavedTrack]:
        data = await self._request(
            "GET", "/me/tracks", params={"limit": limit, "offset": offset or 0}
        )
        return saved_tracks_page(data or {})

    async def current_user_saved_tracks_contains(self, track_ids: Iterable[str]) -> dict[str, bool]:
        """Check which tracks are in the user's library."""
        saved: dict[str, bool] = {}
        for batch in _chunks(track_ids):
            flags = await self._request("GET", "/me/tracks/contains", params={"ids": ",".join(batch)})
            flags = flags or []
            if len(flags) != len(batch):
                logger.warning("Asked about %d tracks, got %d answers", len(batch), len(flags))
            # Unanswered ids are left out; the view model re-checks them
            saved.update(zip(batch, flags, strict=False))
        return saved

    async def current_user_saved_tracks_add(self, track_ids: Iterable[str]) -> None:
        for batch in _chunks(track_ids):
            await self._request("PUT", "/me/tracks", json_data={"ids": batch})

    async def current_user_saved_tracks_delete(self, track_ids: Iterable[str]) -> None:
        for batch in _chunks(track_ids):
            await self._request("DELETE", "/me/tracks", json_data={"ids": batch})


async def _error_message(resp: aiohttp.ClientResponse) -> str:
    """Extract the API's error message from a failed response."""
    try:
        data = await resp.json(content_type=None)
    except (ValueError, aiohttp.ContentTypeError):
        return resp.reason or "Unknown error"
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return data.get("error_description") or error
    return resp.reason or "Unknown error"
