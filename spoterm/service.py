"""Background worker that executes API commands."""

from __future__ import annotations

import asyncio
import logging

from aiohttp import ClientError

from spoterm.api import SpotifyAPI, SpotifyAPIError
from spoterm.auth import AuthError
from spoterm.events import (
    CheckSavedTracks,
    Command,
    CommandChannel,
    CommandFailed,
    DevicesResult,
    FetchDevices,
    FetchPlayback,
    FetchRecentlyPlayed,
    FetchSavedTracks,
    NextTrack,
    PausePlayback,
    PlaybackResult,
    PreviousTrack,
    RecentlyPlayedResult,
    RemoveSavedTracks,
    Result,
    SavedTracksChecked,
    SavedTracksPage,
    SaveTracks,
    Seek,
    SetRepeat,
    SetShuffle,
    SetVolume,
    StartPlayback,
    TracksRemoved,
    TracksSaved,
    TransferPlayback,
)

logger = logging.getLogger(__name__)


class SpotifyService:
    """Consumes commands from the channel and posts their results back.

    Commands run one at a time in arrival order. Failures are logged and
    reported as :class:`CommandFailed`; they never stop the worker.
    """

    def __init__(self, api: SpotifyAPI, channel: CommandChannel) -> None:
        """Initialize the worker.

        Args:
            api: Web API client used to execute commands.
            channel: Channel to read commands from and post results to.
        """
        self._api = api
        self._channel = channel

    async def run(self) -> None:
        """Process commands until cancelled."""
        logger.debug("API worker started")
        try:
            while True:
                command = await self._channel.next_command()
                await self.handle(command)
        except asyncio.CancelledError:
            logger.debug("API worker stopped")
            raise

    async def handle(self, command: Command) -> None:
        """Execute a single command and post its result, if any."""
        try:
            result = await self._execute(command)
        except (SpotifyAPIError, AuthError, ClientError, TimeoutError) as e:
            message = str(e) or type(e).__name__
            logger.warning("%s failed: %s", type(command).__name__, message)
            self._channel.post(CommandFailed(command, message, seq=command.seq))
            return
        except Exception as e:
            # Unexpected payloads must not end the worker
            logger.exception("Unexpected error handling %s", type(command).__name__)
            message = f"{type(e).__name__}: {e}"
            self._channel.post(CommandFailed(command, message, seq=command.seq))
            return
        if result is not None:
            self._channel.post(result)

    async def _execute(self, command: Command) -> Result | None:  # noqa: PLR0911, PLR0912
        api = self._api
        seq = command.seq

        # Reads
        if isinstance(command, FetchPlayback):
            return PlaybackResult(await api.current_playback(), seq=seq)
        if isinstance(command, FetchDevices):
            return DevicesResult(await api.devices(), seq=seq)
        if isinstance(command, FetchRecentlyPlayed):
            histories = await api.current_user_recently_played(command.limit)
            return RecentlyPlayedResult(histories, seq=seq)
        if isinstance(command, FetchSavedTracks):
            page = await api.current_user_saved_tracks(command.offset)
            return SavedTracksPage(page, seq=seq)
        if isinstance(command, CheckSavedTracks):
            saved = await api.current_user_saved_tracks_contains(command.track_ids)
            return SavedTracksChecked(saved, command.track_ids, seq=seq)

        # Library writes report back so the view model can settle save states
        if isinstance(command, SaveTracks):
            await api.current_user_saved_tracks_add(command.track_ids)
            return TracksSaved(command.track_ids, seq=seq)
        if isinstance(command, RemoveSavedTracks):
            await api.current_user_saved_tracks_delete(command.track_ids)
            return TracksRemoved(command.track_ids, seq=seq)

        # Fire-and-forget player commands
        if isinstance(command, StartPlayback):
            await api.start_playback(command.device_id, command.uris)
        elif isinstance(command, PausePlayback):
            await api.pause_playback(command.device_id)
        elif isinstance(command, NextTrack):
            await api.next_track(command.device_id)
        elif isinstance(command, PreviousTrack):
            await api.previous_track(command.device_id)
        elif isinstance(command, Seek):
            await api.seek_track(command.position_ms, command.device_id)
        elif isinstance(command, SetVolume):
            await api.volume(command.volume_percent, command.device_id)
        elif isinstance(command, SetShuffle):
            await api.shuffle(command.state, command.device_id)
        elif isinstance(command, SetRepeat):
            await api.repeat(command.state, command.device_id)
        elif isinstance(command, TransferPlayback):
            await api.transfer_playback(command.device_id, command.play)
        else:
            logger.warning("Ignoring unknown command %r", command)
        return None
