"""YouTube to MP3 conversion service."""

from ytmp3.config import VERSION, Settings
from ytmp3.web import create_app

__all__ = ["VERSION", "Settings", "create_app"]
