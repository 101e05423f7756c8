"""Interactive terminal application for spoterm."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
import sys
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from pathlib import Path

import aiohttp

from spoterm.api import SpotifyAPI
from spoterm.auth import TOKEN_CACHE_FILE, SpotifyOAuth, TokenCache
from spoterm.controller import SpotermController
from spoterm.events import CommandChannel
from spoterm.service import SpotifyService
from spoterm.settings import SettingsManager, ensure_credentials, get_settings_manager
from spoterm.tui.keyboard import keyboard_loop
from spoterm.tui.ui import SpotermUI
from spoterm.tui.views import LikedSongsView, RecentPlayedView
from spoterm.utils import create_task

logger = logging.getLogger(__name__)

DEFAULT_TICK_MS = 100
DEFAULT_POLL_MS = 1000


@dataclass
class AppArgs:
    """Configuration for the spoterm application."""

    config_dir: Path | None = None
    device_name: str | None = None
    tick_ms: int = DEFAULT_TICK_MS
    poll_ms: int = DEFAULT_POLL_MS


async def _every(interval: float, step: Callable[[], None], name: str) -> None:
    """Call ``step`` every ``interval`` seconds until cancelled."""
    while True:
        try:
            step()
        except Exception:
            # A bad frame must not take the UI down
            logger.exception("Unexpected error in %s loop", name)
        await asyncio.sleep(interval)


class SpotermApp:
    """Main spoterm application."""

    def __init__(self, args: AppArgs) -> None:
        """Initialize the application."""
        self._args = args
        self._channel = CommandChannel()
        self._controller: SpotermController | None = None
        self._settings: SettingsManager | None = None
        self._ui: SpotermUI | None = None
        self._tasks: list[asyncio.Task[None]] = []
        self._stopping = False

    async def run(self) -> int:
        """Run the application."""
        args = self._args

        # TUI requires an interactive terminal
        if not sys.stdin.isatty():
            print(  # noqa: T201
                "Error: spoterm requires an interactive terminal.\n"
                "Use 'spoterm --status' for non-interactive use."
            )
            return 1

        # Store reference to current task so it can be cancelled on shutdown
        main_task = asyncio.current_task()
        assert main_task is not None

        def request_shutdown() -> None:
            if not self._stopping:
                self._stopping = True
                main_task.cancel()

        self._settings = settings = await get_settings_manager(args.config_dir)
        if not await ensure_credentials(settings):
            print("Error: missing Spotify client credentials.")  # noqa: T201
            return 1
        assert settings.client_id is not None
        assert settings.client_secret is not None

        try:
            async with aiohttp.ClientSession() as session:
                oauth = SpotifyOAuth(
                    session,
                    settings.client_id,
                    settings.client_secret,
                    TokenCache(settings.config_dir / TOKEN_CACHE_FILE),
                    redirect_uri=settings.redirect_uri,
                )
                # Authorize before the UI takes over the screen
                await oauth.get_token()
                oauth.interactive = False

                service = SpotifyService(SpotifyAPI(session, oauth), self._channel)
                # An explicit --device beats the device picked last session
                self._controller = controller = SpotermController(
                    self._channel,
                    device_name=args.device_name or settings.device_name,
                    device_id=None if args.device_name else settings.last_device_id,
                )
                self._ui = ui = SpotermUI(
                    controller.data,
                    [RecentPlayedView(), LikedSongsView()],
                    selected_tab=settings.selected_tab,
                )
                try:
                    ui.start()
                    controller.request_initial_data()
                    self._spawn(service.run())
                    self._spawn(_every(args.tick_ms / 1000, self._tick, "tick"))
                    self._spawn(
                        _every(args.poll_ms / 1000, controller.request_current_playback, "poll")
                    )
                    self._spawn(
                        keyboard_loop(
                            controller,
                            ui,
                            settings,
                            self._show_device_selector,
                            request_shutdown,
                        )
                    )

                    def signal_handler() -> None:
                        logger.debug("Received interrupt signal, shutting down...")
                        request_shutdown()

                    # Signal handlers aren't supported on this platform (e.g., Windows)
                    loop = asyncio.get_running_loop()
                    with contextlib.suppress(NotImplementedError):
                        loop.add_signal_handler(signal.SIGINT, signal_handler)
                        loop.add_signal_handler(signal.SIGTERM, signal_handler)

                    await asyncio.Event().wait()
                finally:
                    # Stop the worker before the session it uses is closed
                    await self._shutdown()
        except asyncio.CancelledError:
            logger.debug("Main loop cancelled")
        finally:
            await settings.flush()

        return 0

    def _spawn(self, coro: Coroutine[None, None, None]) -> None:
        self._tasks.append(create_task(coro))

    def _tick(self) -> None:
        assert self._controller is not None
        assert self._ui is not None
        self._controller.tick()
        self._ui.sync()

    def _show_device_selector(self) -> None:
        assert self._controller is not None
        assert self._ui is not None
        self._controller.request_devices()
        self._ui.show_device_selector(list(self._controller.data.devices or []))

    async def _shutdown(self) -> None:
        self._stopping = True
        # Signal handlers aren't supported on this platform (e.g., Windows)
        loop = asyncio.get_running_loop()
        with contextlib.suppress(NotImplementedError):
            loop.remove_signal_handler(signal.SIGINT)
            loop.remove_signal_handler(signal.SIGTERM)
        try:
            for task in self._tasks:
                task.cancel()
            for task in self._tasks:
                try:
                    await task
                except asyncio.CancelledError:
                    pass
                except Exception:
                    logger.exception("Task %s failed", task.get_name())
            self._tasks.clear()
        finally:
            if self._ui:
                self._ui.stop()
