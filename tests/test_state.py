"""Tests for merging API results into the view model."""

from spoterm.events import (
    CheckSavedTracks,
    CommandFailed,
    DevicesResult,
    FetchRecentlyPlayed,
    FetchSavedTracks,
    NextTrack,
    PlaybackResult,
    RecentlyPlayedResult,
    SavedTracksChecked,
    SavedTracksPage,
    SaveTracks,
    TracksRemoved,
    TracksSaved,
)
from spoterm.models import Device, Page, PlayHistory, Playback, SavedTrack, Track
from spoterm.state import STATUS_MESSAGE_SECONDS, SaveState, SpotifyData


def _track(track_id, name="Song"):
    return Track(id=track_id, name=name)


def _playback(track_id="t1", progress_ms=0, device=None):
    return Playback(
        device=device or Device(id="d1", name="laptop", volume_percent=40),
        is_playing=True,
        progress_ms=progress_ms,
        item=_track(track_id) if track_id else None,
    )


def _saved(track_id, added_at):
    return SavedTrack(track=_track(track_id), added_at=added_at)


class TestPlaybackReconciliation:
    def test_newer_result_replaces(self):
        data = SpotifyData()
        data.apply(PlaybackResult(_playback(progress_ms=1000), seq=1))
        data.apply(PlaybackResult(_playback(progress_ms=2000), seq=2))
        assert data.current_playback.progress_ms == 2000

    def test_stale_result_dropped(self):
        data = SpotifyData()
        data.apply(PlaybackResult(_playback(progress_ms=2000), seq=5))
        follow_ups = data.apply(PlaybackResult(_playback(progress_ms=1000), seq=3))
        assert follow_ups == []
        assert data.current_playback.progress_ms == 2000

    def test_nothing_playing_clears(self):
        data = SpotifyData()
        data.apply(PlaybackResult(_playback(), seq=1))
        data.apply(PlaybackResult(None, seq=2))
        assert data.current_playback is None
        assert data.playing_track_id is None

    def test_track_change_requests_history(self):
        data = SpotifyData()
        assert data.apply(PlaybackResult(_playback("t1"), seq=1)) == [FetchRecentlyPlayed()]
        assert data.apply(PlaybackResult(_playback("t1"), seq=2)) == []
        assert data.apply(PlaybackResult(_playback("t2"), seq=3)) == [FetchRecentlyPlayed()]


class TestDevices:
    def test_selected_device_refreshed_from_list(self):
        data = SpotifyData(selected_device=Device(id="d1", name="laptop", volume_percent=10))
        data.apply(DevicesResult([Device(id="d1", name="laptop", volume_percent=70)]))
        assert data.selected_device.volume_percent == 70

    def test_select_by_name(self):
        data = SpotifyData()
        data.apply(DevicesResult([Device(id="a", name="phone"), Device(id="b", name="desk")]))
        assert data.select_device_by_name("desk").id == "b"

    def test_select_by_name_waits_for_devices(self):
        data = SpotifyData()
        assert data.select_device_by_name("desk") is None

    def test_select_by_name_keeps_existing_selection(self):
        phone = Device(id="a", name="phone")
        data = SpotifyData(selected_device=phone)
        data.apply(DevicesResult([phone, Device(id="b", name="desk")]))
        assert data.select_device_by_name("desk") is phone

    def test_target_device_falls_back_to_active(self):
        data = SpotifyData()
        assert data.target_device_id() is None
        data.apply(PlaybackResult(_playback(device=Device(id="active", name="tv")), seq=1))
        assert data.target_device_id() == "active"


class TestSaveStates:
    def test_save_state_registers_unknown(self):
        data = SpotifyData()
        assert data.save_state("t1") == SaveState.UNKNOWN
        assert data.take_unknown_track_ids() == ["t1"]
        assert data.save_states["t1"] == SaveState.CHECKING
        assert data.take_unknown_track_ids() == []

    def test_checked(self):
        data = SpotifyData()
        data.apply(SavedTracksChecked({"a": True, "b": False}))
        assert data.save_states == {"a": SaveState.SAVED, "b": SaveState.UNSAVED}

    def test_tracks_saved_refetches_first_page(self):
        data = SpotifyData(save_states={"a": SaveState.SAVING})
        assert data.apply(TracksSaved(("a",))) == [FetchSavedTracks()]
        assert data.save_states["a"] == SaveState.SAVED

    def test_tracks_removed_drops_from_library(self):
        data = SpotifyData(saved_tracks=[_saved("a", "2021"), _saved("b", "2020")])
        data.apply(TracksRemoved(("a",)))
        assert [s.track.id for s in data.saved_tracks] == ["b"]
        assert data.save_states["a"] == SaveState.UNSAVED

    def test_failed_save_reverts_to_unknown(self):
        data = SpotifyData(save_states={"a": SaveState.SAVING})
        data.apply(CommandFailed(SaveTracks(("a",)), "500: boom"))
        assert data.save_states["a"] == SaveState.UNKNOWN
        assert "SaveTracks failed" in data.status_message

    def test_failed_check_reverts_to_unknown(self):
        data = SpotifyData(save_states={"a": SaveState.CHECKING})
        data.apply(CommandFailed(CheckSavedTracks(("a",)), "timeout"))
        assert data.save_states["a"] == SaveState.UNKNOWN

    def test_failed_player_command_only_reports(self):
        data = SpotifyData()
        assert data.apply(CommandFailed(NextTrack("d1"), "404: No active device")) == []
        assert data.status_message == "NextTrack failed: 404: No active device"


class TestSavedTracksPages:
    def test_merge_dedupes_and_sorts_newest_first(self):
        data = SpotifyData(saved_tracks=[_saved("a", "2020-01-01")])
        page = Page(items=[_saved("b", "2021-01-01"), _saved("a", "2020-01-01")], offset=0, limit=2)
        data.apply(SavedTracksPage(page))
        assert [s.track.id for s in data.saved_tracks] == ["b", "a"]
        assert data.save_states["b"] == SaveState.SAVED

    def test_requests_next_page_when_list_changed(self):
        data = SpotifyData()
        page = Page(items=[_saved("a", "2020")], offset=0, limit=50, next="https://next")
        assert data.apply(SavedTracksPage(page)) == [FetchSavedTracks(offset=50)]

    def test_stops_when_page_adds_nothing(self):
        data = SpotifyData(saved_tracks=[_saved("a", "2020")])
        page = Page(items=[_saved("a", "2020")], offset=0, limit=50, next="https://next")
        assert data.apply(SavedTracksPage(page)) == []

    def test_stops_on_last_page(self):
        data = SpotifyData()
        page = Page(items=[_saved("a", "2020")], offset=50, limit=50, next=None)
        assert data.apply(SavedTracksPage(page)) == []

    def test_local_tracks_without_id_skipped(self):
        data = SpotifyData()
        page = Page(items=[_saved(None, "2020"), _saved("a", "2019")])
        data.apply(SavedTracksPage(page))
        assert [s.track.id for s in data.saved_tracks] == ["a"]


class TestRecentlyPlayed:
    def test_replaces_list(self):
        data = SpotifyData()
        data.apply(RecentlyPlayedResult([PlayHistory(_track("a"), "2020-01-01T10:00:00Z")]))
        assert data.recent_play_histories[0].track.id == "a"


class TestStatusMessage:
    def test_expires_after_a_while(self):
        data = SpotifyData()
        data.apply(CommandFailed(NextTrack("d1"), "404: No active device"))
        data.expire_status(now=data.status_set_at + 1)
        assert data.status_message is not None
        data.expire_status(now=data.status_set_at + STATUS_MESSAGE_SECONDS)
        assert data.status_message is None

    def test_cleared_when_device_selected(self):
        data = SpotifyData()
        data.set_status("No device selected (press d to pick one)")
        data.apply(DevicesResult([Device(id="b", name="desk")]))
        data.select_device_by_name("desk")
        assert data.status_message is None


class TestLastDevice:
    def test_device_id_preferred_over_name(self):
        data = SpotifyData()
        data.apply(DevicesResult([Device(id="a", name="desk"), Device(id="b", name="phone")]))
        assert data.select_device_by_name("desk", device_id="b").id == "b"

    def test_falls_back_to_name_when_id_gone(self):
        data = SpotifyData()
        data.apply(DevicesResult([Device(id="a", name="desk")]))
        assert data.select_device_by_name("desk", device_id="gone").id == "a"


class TestUnansweredChecks:
    def test_missing_answers_return_to_unknown(self):
        data = SpotifyData(save_states={"a": SaveState.CHECKING, "b": SaveState.CHECKING})
        data.apply(SavedTracksChecked({"a": True}, ("a", "b")))
        assert data.save_states == {"a": SaveState.SAVED, "b": SaveState.UNKNOWN}
        assert data.take_unknown_track_ids() == ["b"]
