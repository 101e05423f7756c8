"""Tests for the Web API client against an in-process fake server."""

import pytest
from aiohttp import web

from spoterm.api import SpotifyAPIError
from spoterm.models import RepeatState


def _app(*routes: web.RouteDef) -> web.Application:
    app = web.Application()
    app.add_routes(list(routes))
    return app


class TestPlayerReads:
    @pytest.mark.asyncio
    async def test_current_playback_parsed(self, fake_api, payloads):
        async def handler(request):
            assert request.headers["Authorization"] == "Bearer token-1"
            return web.json_response(payloads.playback(repeat_state="context"))

        async with fake_api(_app(web.get("/v1/me/player", handler))) as api:
            playback = await api.current_playback()

        assert playback is not None
        assert playback.is_playing is True
        assert playback.repeat_state == RepeatState.CONTEXT
        assert playback.item is not None
        assert playback.item.name == "Song"
        assert playback.device.volume_percent == 50

    @pytest.mark.asyncio
    async def test_no_content_means_nothing_playing(self, fake_api):
        async def handler(request):
            return web.Response(status=204)

        async with fake_api(_app(web.get("/v1/me/player", handler))) as api:
            assert await api.current_playback() is None

    @pytest.mark.asyncio
    async def test_devices(self, fake_api, payloads):
        async def handler(request):
            return web.json_response(
                {"devices": [payloads.device("a", "one"), payloads.device("b", "two")]}
            )

        async with fake_api(_app(web.get("/v1/me/player/devices", handler))) as api:
            devices = await api.devices()

        assert [d.name for d in devices] == ["one", "two"]


class TestPlayerCommands:
    @pytest.mark.asyncio
    async def test_start_playback_with_uris(self, fake_api):
        seen = {}

        async def handler(request):
            seen["device_id"] = request.query.get("device_id")
            seen["body"] = await request.json()
            return web.Response(status=204)

        async with fake_api(_app(web.put("/v1/me/player/play", handler))) as api:
            await api.start_playback("d1", ["spotify:track:a", "spotify:track:b"])

        assert seen == {"device_id": "d1", "body": {"uris": ["spotify:track:a", "spotify:track:b"]}}

    @pytest.mark.asyncio
    async def test_resume_sends_no_body_and_no_device(self, fake_api):
        seen = {}

        async def handler(request):
            seen["query"] = dict(request.query)
            seen["body"] = await request.read()
            return web.Response(status=204)

        async with fake_api(_app(web.put("/v1/me/player/play", handler))) as api:
            await api.start_playback()

        assert seen == {"query": {}, "body": b""}

    @pytest.mark.asyncio
    async def test_volume_is_clamped(self, fake_api):
        seen = []

        async def handler(request):
            seen.append(request.query["volume_percent"])
            return web.Response(status=204)

        async with fake_api(_app(web.put("/v1/me/player/volume", handler))) as api:
            await api.volume(130, "d1")
            await api.volume(-4, "d1")

        assert seen == ["100", "0"]

    @pytest.mark.asyncio
    async def test_shuffle_and_repeat_params(self, fake_api):
        seen = []

        async def shuffle(request):
            seen.append(("shuffle", request.query["state"]))
            return web.Response(status=204)

        async def repeat(request):
            seen.append(("repeat", request.query["state"]))
            return web.Response(status=204)

        app = _app(web.put("/v1/me/player/shuffle", shuffle), web.put("/v1/me/player/repeat", repeat))
        async with fake_api(app) as api:
            await api.shuffle(True, "d1")
            await api.repeat(RepeatState.TRACK, "d1")

        assert seen == [("shuffle", "true"), ("repeat", "track")]

    @pytest.mark.asyncio
    async def test_transfer_playback_body(self, fake_api):
        seen = {}

        async def handler(request):
            seen.update(await request.json())
            return web.Response(status=204)

        async with fake_api(_app(web.put("/v1/me/player", handler))) as api:
            await api.transfer_playback("d2", play=True)

        assert seen == {"device_ids": ["d2"], "play": True}


class TestLibrary:
    @pytest.mark.asyncio
    async def test_contains_is_chunked_by_fifty(self, fake_api):
        calls = []

        async def handler(request):
            ids = request.query["ids"].split(",")
            calls.append(len(ids))
            return web.json_response([i.endswith("0") for i in ids])

        ids = [f"id{i}" for i in range(120)]
        async with fake_api(_app(web.get("/v1/me/tracks/contains", handler))) as api:
            saved = await api.current_user_saved_tracks_contains(ids)

        assert calls == [50, 50, 20]
        assert len(saved) == 120
        assert saved["id10"] is True
        assert saved["id11"] is False

    @pytest.mark.asyncio
    async def test_saved_tracks_page(self, fake_api, payloads):
        async def handler(request):
            assert request.query["offset"] == "50"
            return web.json_response(
                {
                    "items": [{"added_at": "2020-01-01T00:00:00Z", "track": payloads.track("x")}],
                    "offset": 50,
                    "limit": 50,
                    "total": 51,
                    "next": None,
                }
            )

        async with fake_api(_app(web.get("/v1/me/tracks", handler))) as api:
            page = await api.current_user_saved_tracks(offset=50)

        assert page.offset == 50
        assert page.next is None
        assert page.items[0].track.id == "x"

    @pytest.mark.asyncio
    async def test_delete_sends_ids_in_body(self, fake_api):
        seen = {}

        async def handler(request):
            seen.update(await request.json())
            return web.Response(status=200)

        async with fake_api(_app(web.delete("/v1/me/tracks", handler))) as api:
            await api.current_user_saved_tracks_delete(["a", "b"])

        assert seen == {"ids": ["a", "b"]}


class TestErrors:
    @pytest.mark.asyncio
    async def test_error_message_from_body(self, fake_api):
        async def handler(request):
            return web.json_response(
                {"error": {"status": 404, "message": "Player command failed: No active device found"}},
                status=404,
            )

        async with fake_api(_app(web.put("/v1/me/player/pause", handler))) as api:
            with pytest.raises(SpotifyAPIError) as exc_info:
                await api.pause_playback()

        assert exc_info.value.status == 404
        assert "No active device" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_error_without_json_body(self, fake_api):
        async def handler(request):
            return web.Response(status=502, text="bad gateway")

        async with fake_api(_app(web.post("/v1/me/player/next", handler))) as api:
            with pytest.raises(SpotifyAPIError) as exc_info:
                await api.next_track()

        assert exc_info.value.status == 502

    @pytest.mark.asyncio
    async def test_401_refreshes_once_and_retries(self, fake_api, tokens):
        seen = []

        async def handler(request):
            auth = request.headers["Authorization"]
            seen.append(auth)
            if auth == "Bearer token-1":
                return web.json_response({"error": {"status": 401, "message": "expired"}}, status=401)
            return web.json_response({"devices": []})

        async with fake_api(_app(web.get("/v1/me/player/devices", handler))) as api:
            assert await api.devices() == []

        assert tokens.refreshes == 1
        assert seen == ["Bearer token-1", "Bearer token-2"]

    @pytest.mark.asyncio
    async def test_repeated_401_raises(self, fake_api, tokens):
        async def handler(request):
            return web.json_response({"error": {"status": 401, "message": "nope"}}, status=401)

        async with fake_api(_app(web.get("/v1/me/player/devices", handler))) as api:
            with pytest.raises(SpotifyAPIError) as exc_info:
                await api.devices()

        assert exc_info.value.status == 401
        assert tokens.refreshes == 1

    @pytest.mark.asyncio
    async def test_short_contains_answer_leaves_ids_out(self, fake_api):
        async def handler(request):
            return web.json_response([True])

        async with fake_api(_app(web.get("/v1/me/tracks/contains", handler))) as api:
            saved = await api.current_user_saved_tracks_contains(["a", "b"])

        assert saved == {"a": True}
