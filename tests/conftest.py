"""Shared fixtures: JSON payload builders and an in-process fake Web API."""

from __future__ import annotations

import contextlib
from collections.abc import AsyncIterator, Callable
from typing import Any

import aiohttp
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from spoterm.api import SpotifyAPI


def track_json(track_id: str | None = "t1", name: str = "Song", duration_ms: int = 200_000) -> dict[str, Any]:
    return {
        "id": track_id,
        "name": name,
        "uri": f"spotify:track:{track_id}",
        "duration_ms": duration_ms,
        "artists": [{"name": "Artist A"}, {"name": "Artist B"}],
        "album": {"name": "Album"},
        "type": "track",
    }


def device_json(device_id: str = "d1", name: str = "laptop", volume: int = 50) -> dict[str, Any]:
    return {
        "id": device_id,
        "name": name,
        "type": "Computer",
        "volume_percent": volume,
        "is_active": True,
    }


def playback_json(**overrides: Any) -> dict[str, Any]:
    data: dict[str, Any] = {
        "device": device_json(),
        "is_playing": True,
        "shuffle_state": False,
        "repeat_state": "off",
        "progress_ms": 10_000,
        "item": track_json(),
    }
    data.update(overrides)
    return data


class FakeTokens:
    """Token provider that counts refreshes."""

    def __init__(self) -> None:
        self.token = "token-1"
        self.refreshes = 0

    async def get_token(self) -> str:
        return self.token

    async def refresh(self) -> str:
        self.refreshes += 1
        self.token = f"token-{self.refreshes + 1}"
        return self.token


@pytest.fixture
def tokens() -> FakeTokens:
    return FakeTokens()


@pytest.fixture
def payloads() -> Any:
    """Expose the JSON builders to tests."""

    class _Payloads:
        track = staticmethod(track_json)
        device = staticmethod(device_json)
        playback = staticmethod(playback_json)

    return _Payloads


@pytest.fixture
def fake_api(tokens: FakeTokens) -> Callable[[web.Application], contextlib.AbstractAsyncContextManager[SpotifyAPI]]:
    """Serve an aiohttp app locally and yield a SpotifyAPI pointed at it."""

    @contextlib.asynccontextmanager
    async def _serve(app: web.Application) -> AsyncIterator[SpotifyAPI]:
        async with TestServer(app) as server, aiohttp.ClientSession() as session:
            yield SpotifyAPI(session, tokens, base_url=str(server.make_url("/v1")))

    return _serve
