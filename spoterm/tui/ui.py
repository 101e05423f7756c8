"""Rich-based terminal UI for spoterm."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Self

from rich.console import Console, ConsoleOptions, RenderResult
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from spoterm.models import Device, Playback, RepeatState
from spoterm.state import SaveState, SpotifyData
from spoterm.tui.views import TrackListView
from spoterm.utils import format_time


class _RefreshableLayout:
    """A renderable that rebuilds on each render cycle."""

    def __init__(self, ui: SpotermUI) -> None:
        self._ui = ui

    def __rich_console__(self, console: Console, options: ConsoleOptions) -> RenderResult:
        """Rebuild and yield the layout on each render."""
        yield self._ui._build_layout()  # noqa: SLF001


# Duration in seconds to highlight a pressed shortcut
SHORTCUT_HIGHLIGHT_DURATION = 0.15

# Rows taken by everything except the track list
_CHROME_HEIGHT = 18

_LIKE_STYLES = {
    SaveState.SAVED: ("❤", "bold red"),
    SaveState.SAVING: ("❤", "red"),
    SaveState.UNSAVED: ("♡", "dim"),
    SaveState.UNSAVING: ("♡", "dim red"),
}

_REPEAT_LABELS = {
    RepeatState.OFF: "off",
    RepeatState.TRACK: "track",
    RepeatState.CONTEXT: "context",
}


@dataclass
class UIState:
    """Holds state for the UI display."""

    # Menu
    selected_tab: int = 0

    # Device selector
    show_device_selector: bool = False
    available_devices: list[Device] = field(default_factory=list)
    selected_device_index: int = 0

    # Progress interpolation
    playback: Playback | None = None
    progress_updated_at: float = 0.0  # time.monotonic() when progress was updated

    # Shortcut highlight
    highlighted_shortcut: str | None = None
    highlight_time: float = 0.0


class SpotermUI:
    """Rich-based terminal UI for spoterm."""

    def __init__(
        self,
        data: SpotifyData,
        views: list[TrackListView],
        *,
        selected_tab: int = 0,
        console: Console | None = None,
    ) -> None:
        """Initialize the UI.

        Args:
            data: View model rendered by the panels.
            views: Track lists, one per menu tab.
            selected_tab: Initially selected tab.
            console: Console to render on.
        """
        self._console = console or Console()
        self._data = data
        self._views = views
        self._state = UIState(selected_tab=selected_tab % len(views))
        self._live: Live | None = None

    @property
    def state(self) -> UIState:
        """Get the UI state for external updates."""
        return self._state

    @property
    def current_view(self) -> TrackListView:
        return self._views[self._state.selected_tab]

    def next_tab(self) -> None:
        self._state.selected_tab = (self._state.selected_tab + 1) % len(self._views)
        self.refresh()

    def previous_tab(self) -> None:
        self._state.selected_tab = (self._state.selected_tab - 1) % len(self._views)
        self.refresh()

    def sync(self) -> None:
        """Pick up view model changes: list contents and the playback snapshot."""
        for view in self._views:
            view.set_data(self._data)
        playback = self._data.current_playback
        if playback is not self._state.playback:
            self._state.playback = playback
            self._state.progress_updated_at = time.monotonic()
        if self._state.show_device_selector and self._data.devices is not None:
            self._state.available_devices = self._data.devices
            self._state.selected_device_index = min(
                self._state.selected_device_index, max(0, len(self._data.devices) - 1)
            )
        self.refresh()

    def _is_highlighted(self, shortcut: str) -> bool:
        """Check if a shortcut should be highlighted."""
        if self._state.highlighted_shortcut != shortcut:
            return False
        elapsed = time.monotonic() - self._state.highlight_time
        return elapsed < SHORTCUT_HIGHLIGHT_DURATION

    def _shortcut_style(self, shortcut: str) -> str:
        """Get the style for a shortcut key."""
        return "bold yellow reverse" if self._is_highlighted(shortcut) else "bold cyan"

    def highlight_shortcut(self, shortcut: str) -> None:
        """Highlight a shortcut temporarily."""
        self._state.highlighted_shortcut = shortcut
        self._state.highlight_time = time.monotonic()
        self.refresh()

    def _interpolated_progress(self) -> int:
        playback = self._state.playback
        if playback is None:
            return 0
        progress_ms = playback.progress_ms or 0
        duration_ms = playback.item.duration_ms if playback.item else 0
        if playback.is_playing and self._state.progress_updated_at > 0 and duration_ms > 0:
            elapsed_ms = (time.monotonic() - self._state.progress_updated_at) * 1000
            progress_ms = min(duration_ms, progress_ms + int(elapsed_ms))
        return progress_ms

    def _build_menu_tabs(self) -> Panel:
        """Build the menu tab bar."""
        tabs = Text()
        for i, view in enumerate(self._views):
            if i:
                tabs.append(" │ ", style="dim")
            style = "bold red" if i == self._state.selected_tab else "cyan"
            tabs.append(view.title, style=style)
        return Panel(tabs, title="Menu", border_style="cyan")

    def _build_now_playing_panel(self, *, expand: bool = False) -> Panel:
        """Build the now playing panel."""
        playback = self._data.current_playback
        track = playback.item if playback else None

        # Show prompt when nothing is playing (5 lines total)
        if track is None:
            content = Table.grid()
            content.add_column()
            content.add_row("")
            line1 = Text()
            line1.append("Nothing playing. Press ", style="dim")
            line1.append("<enter>", style="bold cyan")
            line1.append(" on a track to start", style="dim")
            content.add_row(line1)
            line2 = Text()
            line2.append("Press ", style="dim")
            line2.append("d", style="bold cyan")
            line2.append(" to choose a device", style="dim")
            content.add_row(line2)
            content.add_row("")
            content.add_row("")
            return Panel(content, title="Now Playing", border_style="blue", expand=expand)

        like, like_style = _LIKE_STYLES.get(
            self._data.save_state(track.id) if track.id else SaveState.UNKNOWN, ("?", "dim")
        )

        # Info grid with label/value columns
        info = Table.grid(padding=(0, 1))
        info.add_column(style="dim", width=8)
        info.add_column()

        title = Text(track.name, style="bold white")
        title.append(f"  {like}", style=like_style)
        info.add_row("Title:", title)
        info.add_row("Artist:", Text(track.artist_names or "Unknown artist", style="cyan"))
        info.add_row("Album:", Text(track.album_name, style="dim"))

        content = Table.grid()
        content.add_column()
        content.add_row(info)
        content.add_row("")

        space_label = "pause" if playback and playback.is_playing else "play"
        shortcuts = Text()
        shortcuts.append("b", style=self._shortcut_style("prev"))
        shortcuts.append(" prev  ", style="dim")
        shortcuts.append("p", style=self._shortcut_style("space"))
        shortcuts.append(f" {space_label}  ", style="dim")
        shortcuts.append("n", style=self._shortcut_style("next"))
        shortcuts.append(" next  ", style="dim")
        shortcuts.append("l", style=self._shortcut_style("like"))
        shortcuts.append(" like", style="dim")
        content.add_row(shortcuts)

        return Panel(content, title="Now Playing", border_style="blue", expand=expand)

    def _build_progress_bar(self, *, expand: bool = False) -> Panel:
        """Build the progress bar panel."""
        playback = self._state.playback
        duration_ms = playback.item.duration_ms if playback and playback.item else 0
        progress_ms = self._interpolated_progress()

        percentage = min(100, progress_ms / duration_ms * 100) if duration_ms > 0 else 0

        # Time text (fixed width)
        time_str = f"{format_time(progress_ms)} / {format_time(duration_ms)}"

        # Calculate bar width: terminal - panel borders (4) - time text - spacing
        bar_width = max(10, self._console.width - 4 - len(time_str) - 5)
        filled = int(bar_width * percentage / 100)
        empty = bar_width - filled

        bar = Text()
        bar.append("[", style="dim")
        bar.append("=" * filled, style="green bold")
        if filled < bar_width:
            bar.append(">", style="green bold")
            bar.append("-" * max(0, empty - 1), style="dim")
        bar.append("] ", style="dim")

        time_text_styled = Text()
        time_text_styled.append(format_time(progress_ms), style="cyan")
        time_text_styled.append(" / ", style="dim")
        time_text_styled.append(format_time(duration_ms), style="cyan")

        # Use grid to keep bar and time on same line
        content = Table.grid(expand=True, padding=0)
        content.add_column()
        content.add_column(justify="right", no_wrap=True)
        content.add_row(bar, time_text_styled)

        return Panel(content, title="Progress", border_style="green", expand=expand)

    def _build_player_panel(self, *, expand: bool = False) -> Panel:
        """Build the volume/device/modes panel."""
        playback = self._data.current_playback

        info = Table.grid(padding=(0, 2))
        info.add_column()
        info.add_column()

        if playback is None:
            info.add_row("Volume:", Text("--", style="dim"))
            info.add_row("Device:", Text(self._device_label(), style="dim"))
            info.add_row("Shuffle:", Text("--", style="dim"))
            info.add_row("Repeat:", Text("--", style="dim"))
        else:
            info.add_row("Volume:", Text(f"{playback.device.volume_percent}%", style="cyan"))
            info.add_row("Device:", Text(playback.device.name or self._device_label(), style="cyan"))
            shuffle_style = "green" if playback.shuffle_state else "dim"
            info.add_row("Shuffle:", Text("on" if playback.shuffle_state else "off", style=shuffle_style))
            repeat_style = "dim" if playback.repeat_state == RepeatState.OFF else "green"
            info.add_row("Repeat:", Text(_REPEAT_LABELS[playback.repeat_state], style=repeat_style))

        content = Table.grid()
        content.add_column()
        content.add_row(info)

        shortcuts = Text()
        shortcuts.append("+", style=self._shortcut_style("up"))
        shortcuts.append("/", style="dim")
        shortcuts.append("-", style=self._shortcut_style("down"))
        shortcuts.append(" vol  ", style="dim")
        shortcuts.append("s", style=self._shortcut_style("shuffle"))
        shortcuts.append(" shuf  ", style="dim")
        shortcuts.append("r", style=self._shortcut_style("repeat"))
        shortcuts.append(" rep", style="dim")
        content.add_row(shortcuts)

        return Panel(content, title="Player", border_style="magenta", expand=expand)

    def _device_label(self) -> str:
        device = self._data.selected_device
        return device.name if device else "No device"

    def _build_track_list_panel(self) -> Panel:
        """Build the list panel of the selected tab."""
        view = self.current_view
        rows = view.rows

        content = Table.grid(expand=True, padding=(0, 1))
        content.add_column(width=2, no_wrap=True)
        content.add_column(ratio=3, no_wrap=True)
        content.add_column(ratio=2, no_wrap=True)
        content.add_column(justify="right", no_wrap=True)

        if not rows:
            content.add_row("", Text("Loading...", style="dim"), "", "")
            return Panel(content, title=view.title, border_style="white")

        # Scroll so the cursor stays visible
        visible = max(5, self._console.height - _CHROME_HEIGHT)
        selected = view.selected if view.selected is not None else 0
        start = max(0, min(selected - visible // 2, len(rows) - visible))
        for index in range(start, min(len(rows), start + visible)):
            row = rows[index]
            is_selected = index == view.selected
            marker = Text(">", style="bold cyan") if is_selected else Text(" ")
            name_style = "bold white" if is_selected else "white"
            content.add_row(
                marker,
                Text(row.track.name, style=name_style),
                Text(row.track.primary_artist, style="cyan" if is_selected else "dim"),
                Text(row.detail, style="dim"),
            )

        title = f"{view.title} ({len(rows)})"
        return Panel(content, title=title, border_style="white")

    def _build_device_selector_panel(self) -> Panel:
        """Build the device selector panel."""
        content = Table.grid()
        content.add_column()

        if not self._state.available_devices:
            content.add_row("")
            content.add_row(Text("Searching for devices...", style="dim"))
            content.add_row("")
        else:
            current = self._data.selected_device
            for i, device in enumerate(self._state.available_devices):
                is_selected = i == self._state.selected_device_index
                is_current = current is not None and device.id == current.id

                line = Text()
                if is_selected:
                    line.append(" > ", style="bold cyan")
                else:
                    line.append("   ")

                name_style = "bold white" if is_selected else "white"
                line.append(device.name, style=name_style)

                if is_current:
                    line.append(" (current)", style="dim green")
                if device.is_active:
                    line.append(" (active)", style="dim yellow")

                content.add_row(line)

                detail = Text()
                detail.append("   ")
                detail_style = "cyan" if is_selected else "dim"
                detail.append(f"   {device.type} · volume {device.volume_percent}%", style=detail_style)
                content.add_row(detail)

        content.add_row("")

        shortcuts = Text()
        shortcuts.append("↑", style=self._shortcut_style("selector-up"))
        shortcuts.append("/", style="dim")
        shortcuts.append("↓", style=self._shortcut_style("selector-down"))
        shortcuts.append(" navigate  ", style="dim")
        shortcuts.append("<enter>", style=self._shortcut_style("selector-enter"))
        shortcuts.append(" select  ", style="dim")
        shortcuts.append("q", style=self._shortcut_style("selector-close"))
        shortcuts.append(" back", style="dim")
        content.add_row(shortcuts)

        return Panel(content, title="Select Device", border_style="cyan")

    def _build_layout(self) -> Table:
        """Build the complete UI layout."""
        # Get terminal width and leave 1 char margin to prevent wrapping
        width = self._console.width - 1

        layout = Table.grid(expand=False)
        layout.add_column(width=width)

        if self._state.show_device_selector:
            layout.add_row(self._build_device_selector_panel())
            return layout

        layout.add_row(self._build_menu_tabs())

        # Top row: Now Playing + Player
        top_row = Table.grid(expand=True)
        top_row.add_column(ratio=2)
        top_row.add_column(ratio=1)
        top_row.add_row(
            self._build_now_playing_panel(expand=True),
            self._build_player_panel(expand=True),
        )
        layout.add_row(top_row)
        layout.add_row(self._build_progress_bar(expand=True))
        layout.add_row(self._build_track_list_panel())
        layout.add_row(self._build_status_line())

        return layout

    def _build_status_line(self) -> Table:
        """Build the status line at the bottom."""
        left = Text()
        left.append("  ")  # Align with panel content
        if self._data.status_message:
            left.append(self._data.status_message, style="dim yellow")
        else:
            left.append(f"Device: {self._device_label()}", style="dim")

        right = Text()
        right.append("←", style=self._shortcut_style("tab-prev"))
        right.append("/", style="dim")
        right.append("→", style=self._shortcut_style("tab-next"))
        right.append(" tabs  ", style="dim")
        right.append("d", style=self._shortcut_style("device"))
        right.append(" device  ", style="dim")
        right.append("q", style=self._shortcut_style("quit"))
        right.append(" quit", style="dim")

        # Use grid for left/right alignment with padding column
        line = Table.grid(expand=True)
        line.add_column(ratio=1)
        line.add_column(justify="right")
        line.add_column(width=2)  # Right padding to align with panel interior
        line.add_row(left, right, "")
        return line

    def refresh(self) -> None:
        """Request a UI refresh."""
        if self._live is not None:
            self._live.refresh()

    def show_device_selector(self, devices: list[Device]) -> None:
        """Show the device selector with available devices."""
        self._state.available_devices = devices
        current = self._data.selected_device
        self._state.selected_device_index = next(
            (i for i, d in enumerate(devices) if current is not None and d.id == current.id), 0
        )
        self._state.show_device_selector = True
        self.refresh()

    def hide_device_selector(self) -> None:
        """Hide the device selector."""
        self._state.show_device_selector = False
        self.refresh()

    def is_device_selector_visible(self) -> bool:
        """Check if the device selector is currently visible."""
        return self._state.show_device_selector

    def move_device_selection(self, delta: int) -> None:
        """Move the device selection by delta (-1 for up, +1 for down)."""
        if not self._state.available_devices:
            return
        new_index = self._state.selected_device_index + delta
        self._state.selected_device_index = max(
            0, min(len(self._state.available_devices) - 1, new_index)
        )
        self.refresh()

    def get_selected_device(self) -> Device | None:
        """Get the currently highlighted device."""
        if not self._state.available_devices:
            return None
        if 0 <= self._state.selected_device_index < len(self._state.available_devices):
            return self._state.available_devices[self._state.selected_device_index]
        return None

    def start(self) -> None:
        """Start the live display."""
        self._console.clear()
        self._live = Live(
            _RefreshableLayout(self),
            console=self._console,
            refresh_per_second=4,
            screen=True,
        )
        self._live.start()

    def stop(self) -> None:
        """Stop the live display."""
        if self._live is not None:
            self._live.stop()
            self._live = None

    def __enter__(self) -> Self:
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, *_: object) -> None:
        """Context manager exit."""
        self.stop()
