"""Translates user intents into API commands against the current view model."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from spoterm.events import (
    CheckSavedTracks,
    Command,
    CommandChannel,
    FetchDevices,
    FetchPlayback,
    FetchRecentlyPlayed,
    FetchSavedTracks,
    NextTrack,
    PausePlayback,
    PreviousTrack,
    RemoveSavedTracks,
    SaveTracks,
    Seek,
    SetRepeat,
    SetShuffle,
    SetVolume,
    StartPlayback,
    TransferPlayback,
)
from spoterm.models import Device, RepeatState
from spoterm.state import SaveState, SpotifyData
from spoterm.utils import format_time

logger = logging.getLogger(__name__)

VOLUME_STEP = 6
# Within this much of the track start, "previous" skips back instead of rewinding
RESTART_THRESHOLD_MS = 3000


class SpotermController:
    """Issues fire-and-forget commands and reconciles their results."""

    def __init__(
        self,
        channel: CommandChannel,
        data: SpotifyData | None = None,
        device_name: str | None = None,
        device_id: str | None = None,
    ) -> None:
        """Initialize the controller.

        Args:
            channel: Channel shared with the API worker.
            data: View model to reconcile into (a fresh one by default).
            device_name: Device to select automatically; defaults to the hostname.
            device_id: Device to prefer over ``device_name`` when it is available.
        """
        self._channel = channel
        self.data = data or SpotifyData()
        self._device_name = device_name
        self._device_id = device_id

    def send(self, command: Command) -> None:
        self._channel.send(command)

    def fetch_results(self) -> int:
        """Apply every pending result and send the follow-ups. Returns results applied."""
        results = self._channel.drain()
        for result in results:
            for follow_up in self.data.apply(result):
                self.send(follow_up)
        return len(results)

    def tick(self) -> int:
        """Reconcile pending results and settle derived state."""
        applied = self.fetch_results()
        self.data.select_device_by_name(self._device_name, self._device_id)
        self.data.expire_status()
        if (track_id := self.data.playing_track_id) is not None:
            self.data.save_state(track_id)
        unknown = self.data.take_unknown_track_ids()
        if unknown:
            self.send(CheckSavedTracks(tuple(unknown)))
        return applied

    # Startup and polling

    def request_current_playback(self) -> None:
        self.send(FetchPlayback())

    def request_devices(self) -> None:
        self.send(FetchDevices())

    def request_recently_played(self) -> None:
        self.send(FetchRecentlyPlayed())

    def request_saved_tracks(self) -> None:
        self.send(FetchSavedTracks())

    def request_initial_data(self) -> None:
        self.request_devices()
        self.request_recently_played()
        self.request_saved_tracks()
        self.request_current_playback()

    # Player intents

    def _device_or_warn(self) -> str | None:
        device_id = self.data.target_device_id()
        if device_id is None:
            self.data.set_status("No device selected (press d to pick one)")
            logger.info("Dropping player command: no device")
        return device_id

    def toggle_play_pause(self) -> None:
        """Pause when playing, resume otherwise."""
        device_id = self._device_or_warn()
        if device_id is None:
            return
        playback = self.data.current_playback
        if playback is not None and not playback.is_playing:
            self.send(StartPlayback(device_id))
        else:
            self.send(PausePlayback(device_id))
        self.request_current_playback()

    def next_track(self) -> None:
        device_id = self._device_or_warn()
        if device_id is None:
            return
        self.send(NextTrack(device_id))
        self.request_current_playback()

    def previous_track(self) -> None:
        device_id = self._device_or_warn()
        if device_id is None:
            return
        self.send(PreviousTrack(device_id))
        self.request_current_playback()

    def seek_to_zero_or_previous_track(self) -> None:
        """Rewind the current track, or go to the previous one near the start."""
        playback = self.data.current_playback
        if playback is None:
            return
        if (playback.progress_ms or 0) <= RESTART_THRESHOLD_MS:
            self.previous_track()
            return
        device_id = self._device_or_warn()
        if device_id is None:
            return
        self.send(Seek(0, device_id))
        self.request_current_playback()

    def change_volume(self, *, up: bool) -> None:
        """Step the playback device's volume up or down."""
        playback = self.data.current_playback
        if playback is None:
            return
        current = playback.device.volume_percent
        target = min(current + VOLUME_STEP, 100) if up else max(current - VOLUME_STEP, 0)
        self.send(SetVolume(target, playback.device.id or self.data.target_device_id()))
        self.request_current_playback()

    def toggle_shuffle(self) -> None:
        playback = self.data.current_playback
        device_id = self._device_or_warn()
        if playback is None or device_id is None:
            return
        self.send(SetShuffle(not playback.shuffle_state, device_id))
        self.request_current_playback()

    def cycle_repeat(self) -> None:
        """Advance repeat mode: off -> track -> context -> off."""
        playback = self.data.current_playback
        if playback is None:
            return
        self.send(SetRepeat(playback.repeat_state.next(), playback.device.id or None))
        self.request_current_playback()

    def toggle_save_current_track(self) -> None:
        """Add the playing track to the library, or remove it if already saved."""
        track_id = self.data.playing_track_id
        if track_id is None:
            return
        state = self.data.save_states.get(track_id)
        if state in (SaveState.SAVED, SaveState.SAVING):
            self.send(RemoveSavedTracks((track_id,)))
            self.data.save_states[track_id] = SaveState.UNSAVING
        elif state in (SaveState.UNSAVED, SaveState.UNSAVING):
            self.send(SaveTracks((track_id,)))
            self.data.save_states[track_id] = SaveState.SAVING
        # Unknown or still being checked: nothing sensible to toggle yet

    def play_uris(self, uris: Sequence[str]) -> None:
        """Start playing the given track URIs."""
        if not uris:
            return
        device_id = self._device_or_warn()
        if device_id is None:
            return
        self.send(StartPlayback(device_id, tuple(uris)))
        self.request_current_playback()

    def select_device(self, device: Device, *, play: bool | None = None) -> None:
        """Make ``device`` the target and move playback to it."""
        self.data.selected_device = device
        self.data.clear_status()
        if play is None:
            play = self.data.current_playback is not None and self.data.current_playback.is_playing
        self.send(TransferPlayback(device.id, play))
        self.request_current_playback()

    # Presentation

    def player_lines(self) -> list[str]:
        """Describe the current playback as up to three status lines."""
        playback = self.data.current_playback
        if playback is None:
            return []
        lines: list[str] = []
        track = playback.item
        if track is not None:
            like = _LIKE_ICONS.get(self.data.save_state(track.id) if track.id else None, "❓")
            lines.append(
                f"🎵 {like} Song: {track.name} | 🎤 Artist: {track.primary_artist} | "
                f"💿 Album: {track.album_name}"
            )
            progress = format_time(playback.progress_ms or 0)
            duration = format_time(track.duration_ms)
            lines.append(
                f"Progress: {progress} / {duration} | "
                f"Playing: {PLAYING_ICON if playback.is_playing else STOPPED_ICON} | "
                f"Shuffle: {SHUFFLE_ICON if playback.shuffle_state else OFF_ICON} | "
                f"Repeat: {_REPEAT_ICONS[playback.repeat_state]}"
            )
        lines.append(
            f"🔊 Volume: {playback.device.volume_percent} | 💻 Device: {playback.device.name}"
        )
        return lines


_LIKE_ICONS = {
    SaveState.SAVED: "❤",
    SaveState.SAVING: "❤",
    SaveState.UNSAVED: "♡",
    SaveState.UNSAVING: "♡",
}

PLAYING_ICON = "🎧"
STOPPED_ICON = "⏹️"
SHUFFLE_ICON = "🔀"
OFF_ICON = "❌"

_REPEAT_ICONS = {
    RepeatState.OFF: OFF_ICON,
    RepeatState.TRACK: "🔂 🎵",
    RepeatState.CONTEXT: "🔁 💿",
}
