"""View model mirrored from the Web API and the rules for merging results into it."""

from __future__ import annotations

import logging
import socket
import time
from dataclasses import dataclass, field
from enum import Enum, auto

from spoterm.events import (
    CheckSavedTracks,
    Command,
    CommandFailed,
    DevicesResult,
    FetchRecentlyPlayed,
    FetchSavedTracks,
    PlaybackResult,
    RecentlyPlayedResult,
    RemoveSavedTracks,
    Result,
    SavedTracksChecked,
    SavedTracksPage,
    SaveTracks,
    TracksRemoved,
    TracksSaved,
)
from spoterm.models import Device, PlayHistory, Playback, SavedTrack

logger = logging.getLogger(__name__)

# How long a status message stays on screen
STATUS_MESSAGE_SECONDS = 5.0


class SaveState(Enum):
    """Whether a track is in the user's library, as far as we know."""

    SAVED = auto()
    UNSAVED = auto()
    SAVING = auto()
    UNSAVING = auto()
    CHECKING = auto()
    UNKNOWN = auto()


@dataclass
class SpotifyData:
    """Holds state mirrored from the Web API for presentation."""

    devices: list[Device] | None = None
    saved_tracks: list[SavedTrack] = field(default_factory=list)
    recent_play_histories: list[PlayHistory] | None = None
    current_playback: Playback | None = None
    selected_device: Device | None = None
    save_states: dict[str, SaveState] = field(default_factory=dict)
    status_message: str | None = None
    status_set_at: float = 0.0
    last_playback_seq: int = 0

    @property
    def playing_track_id(self) -> str | None:
        playback = self.current_playback
        if playback is None or playback.item is None:
            return None
        return playback.item.id

    def apply(self, result: Result) -> list[Command]:  # noqa: PLR0911
        """Merge a result into the view model.

        Returns follow-up commands the caller should send.
        """
        if isinstance(result, PlaybackResult):
            return self._apply_playback(result)
        if isinstance(result, DevicesResult):
            self.devices = result.devices
            if self.selected_device is not None:
                # Keep the selection but pick up fresh volume/active flags
                for device in result.devices:
                    if device.id == self.selected_device.id:
                        self.selected_device = device
                        break
            return []
        if isinstance(result, RecentlyPlayedResult):
            self.recent_play_histories = result.histories
            return []
        if isinstance(result, SavedTracksChecked):
            for track_id, saved in result.saved.items():
                self.save_states[track_id] = SaveState.SAVED if saved else SaveState.UNSAVED
            for track_id in result.track_ids:
                if track_id not in result.saved:
                    logger.debug("No save state returned for %s", track_id)
                    self.save_states[track_id] = SaveState.UNKNOWN
            return []
        if isinstance(result, TracksSaved):
            for track_id in result.track_ids:
                self.save_states[track_id] = SaveState.SAVED
            return [FetchSavedTracks()]
        if isinstance(result, TracksRemoved):
            removed = set(result.track_ids)
            self.saved_tracks = [s for s in self.saved_tracks if s.track.id not in removed]
            for track_id in removed:
                self.save_states[track_id] = SaveState.UNSAVED
            return []
        if isinstance(result, SavedTracksPage):
            return self._merge_saved_tracks(result)
        if isinstance(result, CommandFailed):
            self._apply_failure(result)
            return []
        logger.warning("Ignoring unknown result %r", result)
        return []

    def _apply_playback(self, result: PlaybackResult) -> list[Command]:
        # Results can arrive after a newer poll has already been applied
        if result.seq < self.last_playback_seq:
            logger.debug(
                "Dropping stale playback result %d (have %d)", result.seq, self.last_playback_seq
            )
            return []
        self.last_playback_seq = result.seq
        previous_track_id = self.playing_track_id
        self.current_playback = result.playback
        if self.playing_track_id != previous_track_id and self.playing_track_id is not None:
            return [FetchRecentlyPlayed()]
        return []

    def _merge_saved_tracks(self, result: SavedTracksPage) -> list[Command]:
        page = result.page
        previous_ids = [s.track.id for s in self.saved_tracks]

        merged: dict[str, SavedTrack] = {}
        for saved in [*self.saved_tracks, *page.items]:
            if saved.track.id is None:
                continue
            merged.setdefault(saved.track.id, saved)
        self.saved_tracks = sorted(merged.values(), key=lambda s: s.added_at, reverse=True)

        for saved in page.items:
            if saved.track.id is not None:
                self.save_states[saved.track.id] = SaveState.SAVED

        new_ids = [s.track.id for s in self.saved_tracks]
        if new_ids != previous_ids and page.next is not None:
            return [FetchSavedTracks(offset=page.offset + page.limit)]
        return []

    def _apply_failure(self, result: CommandFailed) -> None:
        command = result.command
        logger.info("Command %s failed: %s", type(command).__name__, result.message)
        self.set_status(f"{type(command).__name__} failed: {result.message}")
        if isinstance(command, (SaveTracks, RemoveSavedTracks, CheckSavedTracks)):
            # Re-check on the next tick instead of showing a state we never reached
            for track_id in command.track_ids:
                self.save_states[track_id] = SaveState.UNKNOWN

    def save_state(self, track_id: str) -> SaveState:
        """Get the save state of a track, registering it as unknown if new."""
        return self.save_states.setdefault(track_id, SaveState.UNKNOWN)

    def take_unknown_track_ids(self) -> list[str]:
        """Return the IDs with unknown save state and mark them as being checked."""
        unknown = [tid for tid, state in self.save_states.items() if state == SaveState.UNKNOWN]
        for track_id in unknown:
            self.save_states[track_id] = SaveState.CHECKING
        return unknown

    def select_device_by_name(
        self, name: str | None = None, device_id: str | None = None
    ) -> Device | None:
        """Select a device if none is selected yet.

        The device with ``device_id`` wins when present; otherwise the one called
        ``name`` (default: this host).
        """
        if self.selected_device is not None or self.devices is None:
            return self.selected_device
        name = name or socket.gethostname()
        device = next((d for d in self.devices if device_id and d.id == device_id), None)
        if device is None:
            device = next((d for d in self.devices if d.name == name), None)
        if device is not None:
            logger.info("Selected device %s (%s)", device.name, device.id)
            self.selected_device = device
            self.clear_status()
        return self.selected_device

    def set_status(self, message: str) -> None:
        """Show ``message`` on the status line for a while."""
        self.status_message = message
        self.status_set_at = time.monotonic()

    def clear_status(self) -> None:
        self.status_message = None

    def expire_status(self, now: float | None = None) -> None:
        """Drop the status message once it has been shown long enough."""
        if self.status_message is None:
            return
        now = time.monotonic() if now is None else now
        if now - self.status_set_at >= STATUS_MESSAGE_SECONDS:
            self.status_message = None

    def target_device_id(self) -> str | None:
        """Device commands should address: the selected one, else the active one."""
        if self.selected_device is not None:
            return self.selected_device.id
        if self.current_playback is not None and self.current_playback.device.id:
            return self.current_playback.device.id
        return None
