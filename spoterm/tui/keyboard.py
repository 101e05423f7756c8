"""Keyboard input handling for spoterm."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

import readchar

if TYPE_CHECKING:
    from spoterm.controller import SpotermController
    from spoterm.settings import SettingsManager
    from spoterm.tui.ui import SpotermUI

logger = logging.getLogger(__name__)

ENTER_KEYS = ("\r", "\n", readchar.key.ENTER)


class CommandHandler:
    """Handles keyboard commands."""

    def __init__(
        self,
        controller: SpotermController,
        ui: SpotermUI,
        settings: SettingsManager,
    ) -> None:
        """Initialize the command handler."""
        self._controller = controller
        self._ui = ui
        self._settings = settings

    def play_selection(self) -> None:
        """Play the selected track and everything below it."""
        uris = self._ui.current_view.key_enter()
        if not uris:
            return
        logger.info("Playing %d track(s) from %s", len(uris), self._ui.current_view.title)
        self._controller.play_uris(uris)

    def select_up(self) -> None:
        self._ui.current_view.key_up()

    def select_down(self) -> None:
        self._ui.current_view.key_down()

    def next_tab(self) -> None:
        self._ui.next_tab()
        self._settings.update(selected_tab=self._ui.state.selected_tab)

    def previous_tab(self) -> None:
        self._ui.previous_tab()
        self._settings.update(selected_tab=self._ui.state.selected_tab)

    def select_device(self) -> None:
        """Switch playback to the device highlighted in the selector."""
        device = self._ui.get_selected_device()
        self._ui.hide_device_selector()
        if device is None:
            return
        current = self._controller.data.selected_device
        # Skip the transfer if this device is already the target
        if current is not None and current.id == device.id:
            return
        self._controller.select_device(device)
        self._settings.update(device_name=device.name, last_device_id=device.id)


async def keyboard_loop(
    controller: SpotermController,
    ui: SpotermUI,
    settings: SettingsManager,
    show_device_selector: Callable[[], None],
    request_shutdown: Callable[[], None],
) -> None:
    """Run the keyboard input loop.

    Args:
        controller: Turns key presses into API commands.
        ui: UI instance.
        settings: Settings manager for persisting UI choices.
        show_device_selector: Function to show the device selector UI.
        request_shutdown: Callback to request application shutdown.
    """
    handler = CommandHandler(controller, ui, settings)

    # Key dispatch table: key -> (highlight_name | None, action)
    # For keys that need case-insensitive matching, use lowercase
    shortcuts: dict[str, tuple[str | None, Callable[[], None]]] = {
        # Playback
        " ": ("space", controller.toggle_play_pause),
        "p": ("space", controller.toggle_play_pause),
        "n": ("next", controller.next_track),
        ">": ("next", controller.next_track),
        "b": ("prev", controller.seek_to_zero_or_previous_track),
        "<": ("prev", controller.seek_to_zero_or_previous_track),
        "+": ("up", lambda: controller.change_volume(up=True)),
        "=": ("up", lambda: controller.change_volume(up=True)),
        "-": ("down", lambda: controller.change_volume(up=False)),
        "s": ("shuffle", controller.toggle_shuffle),
        "r": ("repeat", controller.cycle_repeat),
        "l": ("like", controller.toggle_save_current_track),
        # Track lists
        readchar.key.UP: (None, handler.select_up),
        readchar.key.DOWN: (None, handler.select_down),
        readchar.key.ENTER: (None, handler.play_selection),
        "\n": (None, handler.play_selection),
        readchar.key.LEFT: ("tab-prev", handler.previous_tab),
        readchar.key.RIGHT: ("tab-next", handler.next_tab),
    }

    loop = asyncio.get_running_loop()

    while True:
        try:
            # Run blocking readkey in executor to not block the event loop
            key = await loop.run_in_executor(None, readchar.readkey)
        except (asyncio.CancelledError, KeyboardInterrupt):
            request_shutdown()
            break

        # Handle device selector mode
        if ui.is_device_selector_visible():
            if key == readchar.key.UP:
                ui.highlight_shortcut("selector-up")
                ui.move_device_selection(-1)
            elif key == readchar.key.DOWN:
                ui.highlight_shortcut("selector-down")
                ui.move_device_selection(1)
            elif key in ENTER_KEYS:
                ui.highlight_shortcut("selector-enter")
                handler.select_device()
            elif key in ("q", "Q", readchar.key.ESC):
                ui.highlight_shortcut("selector-close")
                ui.hide_device_selector()
            # Ignore other keys when selector is open
            continue

        # Handle quit
        if key in ("q", "Q", readchar.key.CTRL_C):
            ui.highlight_shortcut("quit")
            request_shutdown()
            break

        if key in ("d", "D"):
            ui.highlight_shortcut("device")
            show_device_selector()
            continue

        # Handle shortcuts via dispatch table (case-insensitive for letter keys)
        action = shortcuts.get(key) or shortcuts.get(key.lower())
        if action:
            highlight_name, action_handler = action
            if highlight_name:
                ui.highlight_shortcut(highlight_name)
            action_handler()
            ui.sync()
            continue

        # Ignore unhandled escape sequences
        if key.startswith("\x1b"):
            continue
