"""Tests for the track list views."""

from spoterm.models import PlayHistory, SavedTrack, Track
from spoterm.state import SpotifyData
from spoterm.tui.views import LikedSongsView, RecentPlayedView


def _data(n=3):
    return SpotifyData(
        saved_tracks=[
            SavedTrack(Track(id=f"s{i}", name=f"Saved {i}"), f"2020-01-0{i + 1}T00:00:00Z")
            for i in range(n)
        ],
        recent_play_histories=[
            PlayHistory(Track(id="r0", name="Recent"), "2021-05-04T12:34:56.789Z"),
            PlayHistory(Track(id=None, name="Local file"), "2021-05-04T12:00:00Z"),
        ],
    )


class TestTrackListView:
    def test_cursor_starts_unset_and_wraps(self):
        view = LikedSongsView()
        view.set_data(_data())
        assert view.selected is None
        view.key_down()
        assert view.selected == 0
        view.key_up()
        assert view.selected == 2
        view.key_down()
        assert view.selected == 0

    def test_keys_on_empty_list(self):
        view = LikedSongsView()
        view.set_data(SpotifyData())
        view.key_down()
        view.key_up()
        assert view.selected is None
        assert view.key_enter() == []

    def test_enter_plays_from_selection_to_end(self):
        view = LikedSongsView()
        view.set_data(_data())
        view.key_down()
        view.key_down()
        assert view.key_enter() == ["spotify:track:s1", "spotify:track:s2"]

    def test_cursor_clamped_when_list_shrinks(self):
        view = LikedSongsView()
        view.set_data(_data(3))
        view.key_up()
        assert view.selected == 0
        view.key_up()
        assert view.selected == 2
        view.set_data(_data(1))
        assert view.selected == 0
        view.set_data(_data(0))
        assert view.selected is None


class TestRecentPlayedView:
    def test_rows_and_details(self):
        view = RecentPlayedView()
        view.set_data(_data())
        assert [row.detail for row in view.rows] == ["2021-05-04 12:34", "2021-05-04 12:00"]

    def test_enter_skips_tracks_without_id(self):
        view = RecentPlayedView()
        view.set_data(_data())
        view.key_down()
        assert view.key_enter() == ["spotify:track:r0"]

    def test_missing_history_is_empty(self):
        view = RecentPlayedView()
        view.set_data(SpotifyData())
        assert view.rows == []
