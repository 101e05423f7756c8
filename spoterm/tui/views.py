"""Selectable track lists shown under the menu tabs."""

from __future__ import annotations

from dataclasses import dataclass

from spoterm.models import Track, track_uri
from spoterm.state import SpotifyData


@dataclass
class TrackRow:
    """One row of a track list."""

    track: Track
    detail: str = ""


class TrackListView:
    """A list of tracks with a wrapping selection cursor."""

    title = ""

    def __init__(self) -> None:
        self.selected: int | None = None
        self._rows: list[TrackRow] = []

    @property
    def rows(self) -> list[TrackRow]:
        return self._rows

    def set_data(self, data: SpotifyData) -> None:
        """Refresh rows from the view model, keeping the cursor in range."""
        self._rows = self._rows_from(data)
        if self.selected is not None and self.selected >= len(self._rows):
            self.selected = len(self._rows) - 1 if self._rows else None

    def _rows_from(self, data: SpotifyData) -> list[TrackRow]:
        raise NotImplementedError

    def key_up(self) -> None:
        if not self._rows:
            return
        if self.selected is None:
            self.selected = 0
        elif self.selected > 0:
            self.selected -= 1
        else:
            self.selected = len(self._rows) - 1

    def key_down(self) -> None:
        if not self._rows:
            return
        if self.selected is None:
            self.selected = 0
        elif self.selected + 1 < len(self._rows):
            self.selected += 1
        else:
            self.selected = 0

    def key_enter(self) -> list[str]:
        """Track URIs from the selected row to the end of the list."""
        if self.selected is None:
            return []
        return [
            track_uri(row.track.id)
            for row in self._rows[self.selected :]
            if row.track.id is not None
        ]


class RecentPlayedView(TrackListView):
    title = "Recently Played"

    def _rows_from(self, data: SpotifyData) -> list[TrackRow]:
        return [
            TrackRow(history.track, history.played_at[:16].replace("T", " "))
            for history in data.recent_play_histories or []
        ]


class LikedSongsView(TrackListView):
    title = "Liked Songs"

    def _rows_from(self, data: SpotifyData) -> list[TrackRow]:
        return [TrackRow(saved.track, saved.added_at[:10]) for saved in data.saved_tracks]
