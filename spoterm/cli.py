"""Command-line interface for spoterm."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

import aiohttp
from aiohttp import ClientError

from spoterm.api import SpotifyAPI, SpotifyAPIError
from spoterm.auth import TOKEN_CACHE_FILE, AuthError, SpotifyOAuth, TokenCache
from spoterm.controller import SpotermController
from spoterm.events import CommandChannel, PlaybackResult, SavedTracksChecked
from spoterm.settings import (
    SettingsManager,
    default_config_dir,
    ensure_credentials,
    get_settings_manager,
)
from spoterm.tui.app import DEFAULT_POLL_MS, DEFAULT_TICK_MS, AppArgs, SpotermApp

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
LOG_FILE = "spoterm.log"


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for spoterm."""
    parser = argparse.ArgumentParser(description="Control Spotify playback from the terminal")
    parser.add_argument(
        "--config-dir",
        type=Path,
        default=None,
        help="Directory for settings, token cache and log (defaults to ~/.config/spoterm)",
    )
    parser.add_argument(
        "--device",
        default=None,
        help="Name of the device to control (defaults to the last chosen device or hostname)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level to use",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="File to write logs to (defaults to <config dir>/spoterm.log)",
    )
    parser.add_argument(
        "--tick-ms",
        type=int,
        default=DEFAULT_TICK_MS,
        help="How often the UI applies API results, in milliseconds",
    )
    parser.add_argument(
        "--poll-ms",
        type=int,
        default=DEFAULT_POLL_MS,
        help="How often playback state is polled, in milliseconds",
    )
    parser.add_argument(
        "--list-devices",
        action="store_true",
        help="List available Spotify Connect devices and exit",
    )
    parser.add_argument(
        "--status",
        action="store_true",
        help="Print the current playback state and exit",
    )
    parser.add_argument(
        "--logout",
        action="store_true",
        help="Forget the cached access token and exit",
    )
    return parser.parse_args(argv)


def setup_logging(level: str, log_file: Path | None) -> None:
    """Send logs to a file so they don't draw over the UI, or to stderr if None."""
    if log_file is None:
        logging.basicConfig(level=getattr(logging, level), format=LOG_FORMAT)
        return
    log_file.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(level=getattr(logging, level), format=LOG_FORMAT, filename=log_file)


async def _open_api(
    session: aiohttp.ClientSession, settings: SettingsManager
) -> SpotifyAPI:
    if not await ensure_credentials(settings):
        raise AuthError("Missing Spotify client credentials")
    assert settings.client_id is not None
    assert settings.client_secret is not None
    oauth = SpotifyOAuth(
        session,
        settings.client_id,
        settings.client_secret,
        TokenCache(settings.config_dir / TOKEN_CACHE_FILE),
        redirect_uri=settings.redirect_uri,
    )
    await oauth.get_token()
    return SpotifyAPI(session, oauth)


async def list_devices(config_dir: Path | None) -> int:
    """Print all devices available to the user."""
    settings = await get_settings_manager(config_dir)
    async with aiohttp.ClientSession() as session:
        api = await _open_api(session, settings)
        try:
            devices = await api.devices()
        except (SpotifyAPIError, ClientError, TimeoutError) as e:
            print(f"Error listing devices: {e}")
            return 1

    if not devices:
        print("No devices found. Open Spotify on a device first.")
        return 0

    print("Available devices:")
    print()
    for device in devices:
        active = " (active)" if device.is_active else ""
        print(f"  {device.name}{active}")
        print(f"    Type: {device.type}, Volume: {device.volume_percent}%")
    print(f"\nTo control a device:\n  spoterm --device '{devices[0].name}'")
    return 0


async def print_status(config_dir: Path | None) -> int:
    """Print the current playback state."""
    settings = await get_settings_manager(config_dir)
    async with aiohttp.ClientSession() as session:
        api = await _open_api(session, settings)
        try:
            playback = await api.current_playback()
            saved: dict[str, bool] = {}
            if playback is not None and playback.item is not None and playback.item.id:
                saved = await api.current_user_saved_tracks_contains([playback.item.id])
        except (SpotifyAPIError, ClientError, TimeoutError) as e:
            print(f"Error fetching playback: {e}")
            return 1

    # Reuse the controller's formatting on a one-off view model
    controller = SpotermController(CommandChannel())
    controller.data.apply(PlaybackResult(playback))
    controller.data.apply(SavedTracksChecked(saved))
    lines = controller.player_lines()
    print("\n".join(lines) if lines else "Nothing is playing.")
    return 0


async def logout(config_dir: Path | None) -> int:
    """Delete the cached token."""
    cache = TokenCache((config_dir or default_config_dir()) / TOKEN_CACHE_FILE)
    if cache.clear():
        print(f"Removed {cache.path}")
    else:
        print("No cached token found.")
    return 0


def main() -> int:
    """Run the CLI."""
    args = parse_args(sys.argv[1:])
    one_shot = args.list_devices or args.status or args.logout

    config_dir = args.config_dir or default_config_dir()
    log_file = args.log_file or (None if one_shot else config_dir / LOG_FILE)
    setup_logging(args.log_level, log_file)

    try:
        if args.logout:
            return asyncio.run(logout(args.config_dir))
        if args.list_devices:
            return asyncio.run(list_devices(args.config_dir))
        if args.status:
            return asyncio.run(print_status(args.config_dir))

        app = SpotermApp(
            AppArgs(
                config_dir=args.config_dir,
                device_name=args.device,
                tick_ms=args.tick_ms,
                poll_ms=args.poll_ms,
            )
        )
        return asyncio.run(app.run())
    except AuthError as e:
        print(f"Authorization failed: {e}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
