"""Typed views over the Spotify Web API JSON payloads."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")

TRACK_URI_PREFIX = "spotify:track:"


def track_uri(track_id: str) -> str:
    """Build a playable track URI from a track ID."""
    return f"{TRACK_URI_PREFIX}{track_id}"


class RepeatState(Enum):
    """Repeat mode of the player."""

    OFF = "off"
    TRACK = "track"
    CONTEXT = "context"

    def next(self) -> RepeatState:
        """Return the state that follows this one (off -> track -> context -> off)."""
        order = (RepeatState.OFF, RepeatState.TRACK, RepeatState.CONTEXT)
        return order[(order.index(self) + 1) % len(order)]


@dataclass
class Device:
    """A Spotify Connect device."""

    id: str
    name: str
    type: str = "Unknown"
    volume_percent: int = 0
    is_active: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Device:
        """Create a device from API JSON."""
        return cls(
            id=data.get("id") or "",
            name=data.get("name", ""),
            type=data.get("type", "Unknown"),
            volume_percent=data.get("volume_percent") or 0,
            is_active=bool(data.get("is_active", False)),
        )


@dataclass
class Artist:
    name: str


@dataclass
class Album:
    name: str


@dataclass
class Track:
    """A track, as returned inside playback, history and library payloads."""

    id: str | None
    name: str
    uri: str = ""
    duration_ms: int = 0
    artists: list[Artist] = field(default_factory=list)
    album: Album | None = None

    @property
    def artist_names(self) -> str:
        return ", ".join(artist.name for artist in self.artists)

    @property
    def primary_artist(self) -> str:
        return self.artists[0].name if self.artists else "Unknown artist"

    @property
    def album_name(self) -> str:
        return self.album.name if self.album else "Unknown album"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Track:
        """Create a track from API JSON."""
        album = data.get("album")
        return cls(
            id=data.get("id"),
            name=data.get("name", ""),
            uri=data.get("uri", ""),
            duration_ms=data.get("duration_ms") or 0,
            artists=[Artist(name=a.get("name", "")) for a in data.get("artists") or []],
            album=Album(name=album.get("name", "")) if album else None,
        )


@dataclass
class PlayHistory:
    """One entry of the recently played list."""

    track: Track
    played_at: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PlayHistory:
        return cls(track=Track.from_dict(data["track"]), played_at=data.get("played_at", ""))


@dataclass
class SavedTrack:
    """A track in the user's library ("Liked Songs")."""

    track: Track
    added_at: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SavedTrack:
        return cls(track=Track.from_dict(data["track"]), added_at=data.get("added_at", ""))


@dataclass
class Page(Generic[T]):
    """A page of a paginated API listing."""

    items: list[T]
    offset: int = 0
    limit: int = 20
    total: int = 0
    next: str | None = None


@dataclass
class Playback:
    """The user's current playback context."""

    device: Device
    is_playing: bool = False
    shuffle_state: bool = False
    repeat_state: RepeatState = RepeatState.OFF
    progress_ms: int | None = None
    item: Track | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Playback:
        """Create a playback context from API JSON."""
        item = data.get("item")
        return cls(
            device=Device.from_dict(data.get("device") or {}),
            is_playing=bool(data.get("is_playing", False)),
            shuffle_state=bool(data.get("shuffle_state", False)),
            repeat_state=RepeatState(data.get("repeat_state") or "off"),
            progress_ms=data.get("progress_ms"),
            # Episodes and ads come back without the track shape we need
            item=Track.from_dict(item) if item and item.get("type", "track") == "track" else None,
        )


def saved_tracks_page(data: dict[str, Any]) -> Page[SavedTrack]:
    """Parse a /me/tracks response."""
    return Page(
        items=[SavedTrack.from_dict(item) for item in data.get("items") or []],
        offset=data.get("offset", 0),
        limit=data.get("limit", 20),
        total=data.get("total", 0),
        next=data.get("next"),
    )
