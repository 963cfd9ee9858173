# images.py
import asyncio
import io
import logging
import re
from pathlib import Path
from typing import Awaitable, Callable, List, Optional

from PIL import Image

from autotoon import config
from autotoon.genai_client import GAIC, OracleError
from autotoon.placeholder import placeholder_png
from autotoon.prompt_builder import PromptLogger, build_panel_image_prompt

logger = logging.getLogger(__name__)

PANEL_NAME_RE = re.compile(r"^panel_(\d+)\.png$")


# ------------------ PANEL FILES -------------------


def panel_filename(index: int) -> str:
    return f"panel_{index}.png"


def parse_panel_index(name: str) -> Optional[int]:
    m = PANEL_NAME_RE.match(name)
    return int(m.group(1)) if m else None


def list_generated_images(directory: Path) -> List[Path]:
    """Panel files in `directory`, ordered by the index in their name."""
    if not directory.exists():
        return []
    panels = [(parse_panel_index(p.name), p) for p in directory.iterdir() if p.is_file()]
    return [p for idx, p in sorted((x for x in panels if x[0] is not None), key=lambda x: x[0])]


def cleanup_old_images(directory: Path) -> int:
    """Remove panels left over from an earlier run. Returns how many were removed."""
    removed = 0
    try:
        for p in list_generated_images(directory):
            p.unlink()
            removed += 1
    except OSError as e:
        # A stale file we cannot delete must not block a new run
        logger.warning("Error cleaning up old images in %s: %s", directory, e)
    if removed:
        logger.info("Cleaned up %d old panel image(s)", removed)
    return removed


def to_png_bytes(data: bytes) -> bytes:
    """Decode any raster the oracle returns and re-encode it as PNG."""
    img = Image.open(io.BytesIO(data))
    img.load()
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


# ------------------ GENERATOR ---------------------


class PanelImageGenerator:
    """
    Renders one image per panel prompt, one call at a time.

    Calls are paced to stay under the image model's rate limit, each prompt
    gets a bounded number of attempts, and a prompt that never yields a usable
    image gets an offline placeholder instead. Every prompt therefore produces
    exactly one `panel_<index>.png`.
    """

    def __init__(self, g: GAIC, out_dir: Path,
                 max_retries: int = config.IMAGE_MAX_RETRIES,
                 call_timeout: float = config.IMAGE_CALL_TIMEOUT,
                 min_image_bytes: int = config.MIN_IMAGE_BYTES,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
                 log: Optional[PromptLogger] = None):
        self.g = g
        self.out_dir = Path(out_dir)
        self.max_retries = max_retries
        self.call_timeout = call_timeout
        self.min_image_bytes = min_image_bytes
        self.sleep = sleep
        self.log = log or PromptLogger()

    @staticmethod
    def pacing_delay(index: int) -> float:
        """Wait before panel `index`: 2s growing by 0.5s per panel, at most 5s."""
        return min(2.0 + index * 0.5, 5.0)

    @staticmethod
    def retry_delay(attempt: int, rate_limited: bool) -> float:
        delay = min(3.0 + attempt * 2.0, 8.0)
        if rate_limited:
            delay = min(delay * 2, 15.0)
        return delay

    async def generate(self, prompts: List[str]) -> List[Path]:
        self.out_dir.mkdir(parents=True, exist_ok=True)
        cleanup_old_images(self.out_dir)

        logger.info("Starting generation of %d panels", len(prompts))
        paths: List[Path] = []
        for index, prompt in enumerate(prompts):
            if index > 0:
                delay = self.pacing_delay(index)
                logger.debug("Panel %d - waiting %.1fs to avoid rate limits", index, delay)
                await self.sleep(delay)
            paths.append(await self.generate_panel(index, prompt))

        logger.info("Generated %d/%d panels", len(paths), len(prompts))
        return paths

    async def generate_panel(self, index: int, prompt: str) -> Path:
        image_prompt = build_panel_image_prompt(prompt)
        self.log.log(f"PANEL_IMAGE_PROMPT [#{index}]", image_prompt)

        for attempt in range(self.max_retries + 1):
            if attempt:
                logger.info("Panel %d - retry attempt %d/%d", index, attempt, self.max_retries)
            try:
                data = await asyncio.wait_for(
                    self.g.generate_image(image_prompt), timeout=self.call_timeout)
            except Exception as e:
                if isinstance(e, asyncio.TimeoutError):
                    err = OracleError(f"Request timeout after {self.call_timeout:g} seconds")
                elif isinstance(e, OracleError):
                    err = e
                else:
                    err = OracleError(str(e))
                logger.warning("Panel %d - image generation failed (attempt %d): %s",
                               index, attempt, err)
                if attempt < self.max_retries:
                    delay = self.retry_delay(attempt, err.rate_limited)
                    if err.rate_limited:
                        logger.info("Panel %d - rate limit detected, backing off %.1fs",
                                    index, delay)
                    await self.sleep(delay)
                continue

            if not data:
                logger.warning("Panel %d - no image data received (attempt %d)", index, attempt)
                continue
            if len(data) < self.min_image_bytes:
                logger.warning("Panel %d - image data too small (%d bytes, attempt %d)",
                               index, len(data), attempt)
                continue
            try:
                png = await asyncio.to_thread(to_png_bytes, data)
            except Exception as e:
                logger.warning("Panel %d - undecodable image data (attempt %d): %s",
                               index, attempt, e)
                continue

            path = await self._write(index, png)
            logger.info("Panel %d - generated image (%dKB)", index, len(data) // 1024)
            return path

        logger.warning("Panel %d - all attempts failed, using placeholder", index)
        png = await asyncio.to_thread(placeholder_png, prompt)
        return await self._write(index, png)

    async def _write(self, index: int, png: bytes) -> Path:
        path = self.out_dir / panel_filename(index)
        await asyncio.to_thread(path.write_bytes, png)
        return path
