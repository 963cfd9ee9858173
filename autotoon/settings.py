# settings.py
import json
import logging
from pathlib import Path
from typing import Any, Dict, List

from autotoon.models import AppSettings, ComicStyle, utc_now

logger = logging.getLogger(__name__)

COMIC_STYLES: List[ComicStyle] = [
    ComicStyle(id="manga", name="Manga",
               description="Japanese comic style with detailed line art and expressive characters"),
    ComicStyle(id="cartoon", name="Cartoon",
               description="Colorful, fun cartoon style perfect for lighthearted stories"),
    ComicStyle(id="superhero", name="Superhero",
               description="Dynamic superhero comic style with bold colors and action poses"),
    ComicStyle(id="realistic", name="Realistic",
               description="Photorealistic style with detailed environments and characters"),
    ComicStyle(id="watercolor", name="Watercolor",
               description="Soft watercolor painting style with gentle colors and textures"),
    ComicStyle(id="noir", name="Film Noir",
               description="Black and white dramatic style with high contrast and shadows"),
    ComicStyle(id="pixel", name="Pixel Art",
               description="Retro pixel art style reminiscent of classic video games"),
    ComicStyle(id="fantasy", name="Fantasy",
               description="Magical fantasy style with mystical elements and rich details"),
]


class SettingsStore:
    """App settings persisted as a single JSON file, merged over the defaults."""

    def __init__(self, root: Path):
        self.root = Path(root)
        self.settings_file = self.root / "app-settings.json"

    def get(self) -> AppSettings:
        try:
            stored = json.loads(self.settings_file.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return AppSettings()
        if not isinstance(stored, dict):
            return AppSettings()
        try:
            return AppSettings.model_validate({**AppSettings().model_dump(), **stored})
        except ValueError as e:
            logger.warning("Ignoring invalid settings file %s: %s", self.settings_file, e)
            return AppSettings()

    def update(self, patch: Dict[str, Any]) -> AppSettings:
        """Shallow-merge `patch` over the current settings. Raises ValidationError on bad values."""
        merged = {**self.get().model_dump(), **patch, "updatedAt": utc_now()}
        settings = AppSettings.model_validate(merged)
        self._save(settings)
        return settings

    def reset(self) -> AppSettings:
        settings = AppSettings()
        self._save(settings)
        return settings

    def _save(self, settings: AppSettings):
        self.root.mkdir(parents=True, exist_ok=True)
        self.settings_file.write_text(settings.model_dump_json(indent=2), encoding="utf-8")
