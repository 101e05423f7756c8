"""Commands sent to the API worker and the results it sends back.

The terminal UI never awaits the Web API directly. It stamps a command, drops
it on the :class:`CommandChannel` and moves on; the worker posts results that
the UI drains on its next tick.
"""

from __future__ import annotations

import asyncio
import dataclasses
import itertools
import logging
from dataclasses import dataclass, field

from spoterm.models import Device, Page, PlayHistory, Playback, RepeatState, SavedTrack

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Command:
    """Base class for every request sent to the API worker."""

    seq: int = field(default=0, kw_only=True, compare=False)


@dataclass(frozen=True)
class FetchPlayback(Command):
    pass


@dataclass(frozen=True)
class FetchDevices(Command):
    pass


@dataclass(frozen=True)
class FetchRecentlyPlayed(Command):
    limit: int = 50


@dataclass(frozen=True)
class FetchSavedTracks(Command):
    offset: int | None = None


@dataclass(frozen=True)
class CheckSavedTracks(Command):
    track_ids: tuple[str, ...]


@dataclass(frozen=True)
class SaveTracks(Command):
    track_ids: tuple[str, ...]


@dataclass(frozen=True)
class RemoveSavedTracks(Command):
    track_ids: tuple[str, ...]


@dataclass(frozen=True)
class StartPlayback(Command):
    device_id: str | None
    uris: tuple[str, ...] | None = None


@dataclass(frozen=True)
class PausePlayback(Command):
    device_id: str | None


@dataclass(frozen=True)
class NextTrack(Command):
    device_id: str | None


@dataclass(frozen=True)
class PreviousTrack(Command):
    device_id: str | None


@dataclass(frozen=True)
class Seek(Command):
    position_ms: int
    device_id: str | None


@dataclass(frozen=True)
class SetVolume(Command):
    volume_percent: int
    device_id: str | None


@dataclass(frozen=True)
class SetShuffle(Command):
    state: bool
    device_id: str | None


@dataclass(frozen=True)
class SetRepeat(Command):
    state: RepeatState
    device_id: str | None


@dataclass(frozen=True)
class TransferPlayback(Command):
    device_id: str
    play: bool = False


@dataclass(frozen=True)
class Result:
    """Base class for everything the API worker posts back."""

    seq: int = field(default=0, kw_only=True)


@dataclass(frozen=True)
class PlaybackResult(Result):
    playback: Playback | None


@dataclass(frozen=True)
class DevicesResult(Result):
    devices: list[Device]


@dataclass(frozen=True)
class RecentlyPlayedResult(Result):
    histories: list[PlayHistory]


@dataclass(frozen=True)
class SavedTracksPage(Result):
    page: Page[SavedTrack]


@dataclass(frozen=True)
class SavedTracksChecked(Result):
    saved: dict[str, bool]
    # Every id that was asked about; ids missing from `saved` got no answer
    track_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class TracksSaved(Result):
    track_ids: tuple[str, ...]


@dataclass(frozen=True)
class TracksRemoved(Result):
    track_ids: tuple[str, ...]


@dataclass(frozen=True)
class CommandFailed(Result):
    command: Command
    message: str


class CommandChannel:
    """The command/result queue pair shared by the UI and the API worker."""

    def __init__(self) -> None:
        """Initialize empty queues."""
        self._commands: asyncio.Queue[Command] = asyncio.Queue()
        self._results: asyncio.Queue[Result] = asyncio.Queue()
        self._seq = itertools.count(1)

    def send(self, command: Command) -> Command:
        """Stamp a command with a sequence number and enqueue it for the worker.

        Never blocks. Returns the stamped command.
        """
        stamped = dataclasses.replace(command, seq=next(self._seq))
        self._commands.put_nowait(stamped)
        logger.debug("Sent %s", stamped)
        return stamped

    async def next_command(self) -> Command:
        """Wait for the next command (worker side)."""
        return await self._commands.get()

    def post(self, result: Result) -> None:
        """Enqueue a result for the UI (worker side)."""
        self._results.put_nowait(result)

    def drain(self) -> list[Result]:
        """Return every result that is ready, in arrival order, without waiting."""
        results: list[Result] = []
        while True:
            try:
                results.append(self._results.get_nowait())
            except asyncio.QueueEmpty:
                return results

    @property
    def pending_commands(self) -> int:
        """Number of commands waiting for the worker."""
        return self._commands.qsize()
