"""Terminal client for controlling Spotify playback."""
