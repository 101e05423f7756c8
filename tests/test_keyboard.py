"""Tests for the keyboard loop."""

import io

import pytest
import readchar
from rich.console import Console

from spoterm.controller import SpotermController
from spoterm.events import CommandChannel, NextTrack, StartPlayback, TransferPlayback
from spoterm.models import Device, Playback, SavedTrack, Track
from spoterm.settings import SettingsManager
from spoterm.tui import keyboard
from spoterm.tui.keyboard import keyboard_loop
from spoterm.tui.ui import SpotermUI
from spoterm.tui.views import LikedSongsView, RecentPlayedView


class Harness:
    def __init__(self, tmp_path):
        self.channel = CommandChannel()
        self.controller = SpotermController(self.channel)
        self.controller.data.current_playback = Playback(
            device=Device(id="d1", name="laptop", volume_percent=50),
            is_playing=True,
            item=Track(id="t1", name="Song"),
        )
        self.controller.data.saved_tracks = [
            SavedTrack(Track(id="a", name="A"), "2021"),
            SavedTrack(Track(id="b", name="B"), "2020"),
        ]
        self.ui = SpotermUI(
            self.controller.data,
            [RecentPlayedView(), LikedSongsView()],
            console=Console(file=io.StringIO()),
        )
        self.ui.sync()
        self.settings = SettingsManager(tmp_path / "settings.json")
        self.devices = [Device(id="d1", name="laptop"), Device(id="d2", name="desk")]
        self.shutdowns = 0

    def request_shutdown(self):
        self.shutdowns += 1

    def show_device_selector(self):
        self.ui.show_device_selector(self.devices)

    async def run(self, monkeypatch, keys):
        monkeypatch.setattr(keyboard.readchar, "readkey", iter(keys).__next__)
        await keyboard_loop(
            self.controller,
            self.ui,
            self.settings,
            self.show_device_selector,
            self.request_shutdown,
        )

    async def sent(self):
        commands = []
        while self.channel.pending_commands:
            commands.append(await self.channel.next_command())
        return commands


@pytest.fixture
def harness(tmp_path):
    return Harness(tmp_path)


class TestKeyboardLoop:
    @pytest.mark.asyncio
    async def test_quit(self, harness, monkeypatch):
        await harness.run(monkeypatch, ["q"])
        assert harness.shutdowns == 1

    @pytest.mark.asyncio
    async def test_shortcut_sends_command(self, harness, monkeypatch):
        await harness.run(monkeypatch, ["N", "q"])
        assert (await harness.sent())[0] == NextTrack("d1")

    @pytest.mark.asyncio
    async def test_tab_switch_and_play_selection(self, harness, monkeypatch):
        keys = [readchar.key.RIGHT, readchar.key.DOWN, readchar.key.DOWN, readchar.key.ENTER, "q"]
        await harness.run(monkeypatch, keys)
        assert harness.settings.selected_tab == 1
        assert StartPlayback("d1", ("spotify:track:b",)) in await harness.sent()

    @pytest.mark.asyncio
    async def test_device_selector(self, harness, monkeypatch):
        await harness.run(monkeypatch, ["d", readchar.key.DOWN, readchar.key.ENTER, "q"])
        assert harness.controller.data.selected_device.id == "d2"
        assert harness.settings.device_name == "desk"
        assert harness.settings.last_device_id == "d2"
        assert (await harness.sent())[0] == TransferPlayback("d2", True)
        assert harness.shutdowns == 1

    @pytest.mark.asyncio
    async def test_q_in_selector_only_closes_it(self, harness, monkeypatch):
        await harness.run(monkeypatch, ["d", "q", "q"])
        assert not harness.ui.is_device_selector_visible()
        assert harness.shutdowns == 1

    @pytest.mark.asyncio
    async def test_unknown_keys_ignored(self, harness, monkeypatch):
        await harness.run(monkeypatch, ["x", "\x1b[Z", "q"])
        assert await harness.sent() == []
