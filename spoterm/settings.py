"""Settings persistence for spoterm.

This module stores the application credentials and UI preferences. Settings
are loaded from disk at startup and saved with debouncing.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.prompt import Prompt

from spoterm.auth import DEFAULT_REDIRECT_URI

logger = logging.getLogger(__name__)


class _UndefinedType:
    """Singleton for undefined/not-passed values."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "UNDEFINED"


UNDEFINED = _UndefinedType()

# Debounce delay for saving settings
SAVE_DEBOUNCE_SECONDS = 30.0

SETTINGS_FILE = "settings.json"

ENV_CLIENT_ID = "SPOTIFY_CLIENT_ID"
ENV_CLIENT_SECRET = "SPOTIFY_CLIENT_SECRET"
ENV_REDIRECT_URI = "SPOTIFY_REDIRECT_URI"


def default_config_dir() -> Path:
    return Path.home() / ".config" / "spoterm"


@dataclass
class Settings:
    """All persistent settings for spoterm."""

    client_id: str | None = None
    client_secret: str | None = None
    redirect_uri: str = DEFAULT_REDIRECT_URI
    device_name: str | None = None
    last_device_id: str | None = None
    selected_tab: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert settings to a dictionary for serialization."""
        return {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "redirect_uri": self.redirect_uri,
            "device_name": self.device_name,
            "last_device_id": self.last_device_id,
            "selected_tab": self.selected_tab,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Settings:
        """Create settings from a dictionary."""
        return cls(
            client_id=data.get("client_id"),
            client_secret=data.get("client_secret"),
            redirect_uri=data.get("redirect_uri") or DEFAULT_REDIRECT_URI,
            device_name=data.get("device_name"),
            last_device_id=data.get("last_device_id"),
            selected_tab=data.get("selected_tab", 0),
        )


class SettingsManager:
    """Manages settings with debounced disk persistence.

    Changes are debounced and saved after a period of inactivity,
    or immediately on flush(). Environment variables take precedence
    over stored credentials but are never written back.
    """

    def __init__(self, settings_file: Path) -> None:
        """Initialize the settings manager.

        Args:
            settings_file: Path to the settings file.
        """
        self._settings_file = settings_file
        self._settings = Settings()
        self._debounce_save_handle: asyncio.TimerHandle | None = None
        self._dirty = False

    @property
    def config_dir(self) -> Path:
        """Directory holding the settings file (and the token cache)."""
        return self._settings_file.parent

    async def load(self) -> None:
        """Load settings from disk."""
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._load)

    @property
    def client_id(self) -> str | None:
        """Get the application client ID."""
        return os.environ.get(ENV_CLIENT_ID) or self._settings.client_id

    @property
    def client_secret(self) -> str | None:
        """Get the application client secret."""
        return os.environ.get(ENV_CLIENT_SECRET) or self._settings.client_secret

    @property
    def redirect_uri(self) -> str:
        """Get the OAuth redirect URI."""
        return os.environ.get(ENV_REDIRECT_URI) or self._settings.redirect_uri

    @property
    def device_name(self) -> str | None:
        """Get the preferred device name."""
        return self._settings.device_name

    @property
    def last_device_id(self) -> str | None:
        """Get the ID of the last device selected by the user."""
        return self._settings.last_device_id

    @property
    def selected_tab(self) -> int:
        """Get the last selected menu tab."""
        return self._settings.selected_tab

    @property
    def has_credentials(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def update(
        self,
        *,
        client_id: str | None | _UndefinedType = UNDEFINED,
        client_secret: str | None | _UndefinedType = UNDEFINED,
        redirect_uri: str | _UndefinedType = UNDEFINED,
        device_name: str | None | _UndefinedType = UNDEFINED,
        last_device_id: str | None | _UndefinedType = UNDEFINED,
        selected_tab: int | _UndefinedType = UNDEFINED,
    ) -> None:
        """Update settings fields. Only changed fields trigger a save.

        Args:
            client_id: New client ID, or UNDEFINED to keep current.
            client_secret: New client secret, or UNDEFINED to keep current.
            redirect_uri: New redirect URI, or UNDEFINED to keep current.
            device_name: New preferred device name, or UNDEFINED to keep current.
            last_device_id: New last device ID, or UNDEFINED to keep current.
            selected_tab: New selected tab index, or UNDEFINED to keep current.
        """
        changed = False

        # Handle selected_tab separately due to clamping
        if not isinstance(selected_tab, _UndefinedType):
            selected_tab = max(0, selected_tab)
            if self._settings.selected_tab != selected_tab:
                self._settings.selected_tab = selected_tab
                changed = True

        # Handle other fields generically
        fields = {
            "client_id": client_id,
            "client_secret": client_secret,
            "redirect_uri": redirect_uri,
            "device_name": device_name,
            "last_device_id": last_device_id,
        }
        for name, value in fields.items():
            if not isinstance(value, _UndefinedType):
                if getattr(self._settings, name) != value:
                    setattr(self._settings, name, value)
                    changed = True

        if changed:
            self._dirty = True
            self._schedule_save()

    async def flush(self) -> None:
        """Immediately save any pending changes to disk."""
        if self._debounce_save_handle is not None:
            self._debounce_save_handle.cancel()
            self._debounce_save_handle = None
        if self._dirty:
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, self._save)

    def _schedule_save(self) -> None:
        """Schedule a debounced save operation."""
        # Cancel existing timer if any
        if self._debounce_save_handle is not None:
            self._debounce_save_handle.cancel()

        loop = asyncio.get_running_loop()
        self._debounce_save_handle = loop.call_later(
            SAVE_DEBOUNCE_SECONDS, self._debounced_save, loop
        )

    def _debounced_save(self, loop: asyncio.AbstractEventLoop) -> None:
        """Called by the timer to save settings in executor."""
        self._debounce_save_handle = None
        loop.run_in_executor(None, self._save)

    def _load(self) -> None:
        """Load settings from the settings file (blocking I/O)."""
        if not self._settings_file.exists():
            logger.debug("Settings file does not exist: %s", self._settings_file)
            return

        try:
            data = json.loads(self._settings_file.read_text())
            self._settings = Settings.from_dict(data)
            logger.info("Loaded settings from %s", self._settings_file)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Failed to load settings from %s: %s", self._settings_file, e)

    def _save(self) -> None:
        """Save settings to the settings file (blocking I/O)."""
        self._dirty = False
        try:
            self._settings_file.parent.mkdir(parents=True, exist_ok=True)
            self._settings_file.write_text(json.dumps(self._settings.to_dict(), indent=2) + "\n")
            # The file holds the client secret
            self._settings_file.chmod(0o600)
            logger.debug("Saved settings to %s", self._settings_file)
        except OSError as e:
            logger.warning("Failed to save settings to %s: %s", self._settings_file, e)


async def get_settings_manager(config_dir: Path | str | None = None) -> SettingsManager:
    """Create and load a settings manager.

    This should only be called once at startup. Pass the returned instance
    to components that need it.

    Args:
        config_dir: Optional directory to store settings. Defaults to ~/.config/spoterm.

    Returns:
        A new SettingsManager instance with settings loaded from disk.
    """
    if config_dir is None:
        config_dir = default_config_dir()
    elif isinstance(config_dir, str):
        config_dir = Path(config_dir)
    manager = SettingsManager(config_dir / SETTINGS_FILE)
    await manager.load()
    return manager


async def ensure_credentials(settings: SettingsManager, console: Console | None = None) -> bool:
    """Prompt for missing client credentials and persist them.

    Returns False when credentials are missing and cannot be prompted for.
    """
    if settings.has_credentials:
        return True
    console = console or Console()
    if not console.is_interactive:
        return False

    console.print(
        f"No Spotify credentials found in {settings.config_dir / SETTINGS_FILE}. "
        "Enter the Client ID and Client Secret of your Spotify application."
    )
    loop = asyncio.get_running_loop()
    client_id = await loop.run_in_executor(
        None, lambda: Prompt.ask("Client ID", password=True, console=console)
    )
    client_secret = await loop.run_in_executor(
        None, lambda: Prompt.ask("Client Secret", password=True, console=console)
    )
    settings.update(client_id=client_id.strip(), client_secret=client_secret.strip())
    await settings.flush()
    return settings.has_credentials
