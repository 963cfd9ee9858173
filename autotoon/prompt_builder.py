# prompt_builder.py
import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from autotoon import config
from autotoon.genai_client import GAIC

logger = logging.getLogger(__name__)

# ------------------ PROMPTS -----------------------
PROMPTS_DIR = Path(__file__).parent / "prompts"


def load_prompt(name: str) -> str:
    p = PROMPTS_DIR / f"{name}.txt"
    if not p.exists():
        raise FileNotFoundError(f"Prompt file not found: {p}")
    return p.read_text(encoding="utf-8")


STYLE_GUIDE_TPL = load_prompt("style_guide")
PANEL_PROMPT_TPL = load_prompt("panel_prompt")
PANEL_IMAGE_TPL = load_prompt("panel_image")
COMIC_TITLE_TPL = load_prompt("comic_title")


def fill(template: str, **kv) -> str:
    """Replace only specific placeholders, leaving other braces alone."""
    out = template
    for k, v in kv.items():
        out = out.replace(f"{{{k}}}", str(v))
    return out


# --- Simple prompt logger (log channel + file) ---


class PromptLogger:
    def __init__(self, out_file: Optional[Path] = None):
        self.out_file = out_file
        self.lines: List[str] = []

    def log(self, title: str, content: str):
        block = f"\n===== {title} =====\n{content.strip()}\n"
        self.lines.append(block)
        if config.PRINT_PROMPTS:
            logger.info(block)
        else:
            logger.debug(block)

    def flush(self):
        if self.out_file is None:
            return
        self.out_file.parent.mkdir(parents=True, exist_ok=True)
        self.out_file.write_text("".join(self.lines), encoding="utf-8")


_null_logger = PromptLogger()


# ------------------ PIPELINE STEPS ---------------


async def build_style_guide(g: GAIC, story: str, style: str,
                            log: PromptLogger = _null_logger) -> str:
    """Ask the text model for a visual-only style guide. Returns "" on failure."""
    prompt = fill(STYLE_GUIDE_TPL, style=style, story=story)
    log.log("STYLE_GUIDE_PROMPT", prompt)
    try:
        guide = await g.generate_text(prompt)
    except Exception as e:
        logger.error("Style guide generation failed: %s", e)
        return ""
    log.log("STYLE_GUIDE_RESPONSE", guide)
    return guide


def build_panel_prompt_request(index: int, scene: str, style_guide: str,
                               previous_scene: Optional[str], style: str) -> str:
    return fill(
        PANEL_PROMPT_TPL,
        style=style,
        style_guide=style_guide,
        panel_number=index + 1,
        scene=scene,
        previous_scene=previous_scene or "None",
    )


async def build_panel_prompts(g: GAIC, scenes: List[str], style_guide: str, style: str,
                              concurrency: int = config.PROMPT_CONCURRENCY,
                              log: PromptLogger = _null_logger) -> List[str]:
    """
    Generate one image prompt per scene.

    At most `concurrency` calls are in flight. The result has the same length
    and order as `scenes`; a scene whose call fails gets an empty prompt.
    """
    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def one(index: int, scene: str) -> str:
        previous_scene = scenes[index - 1] if index > 0 else None
        prompt = build_panel_prompt_request(
            index, scene, style_guide, previous_scene, style)
        async with semaphore:
            log.log(f"PANEL_PROMPT_REQUEST [#{index}]", prompt)
            try:
                result = await g.generate_text(prompt)
            except Exception as e:
                logger.error("Prompt generation failed for panel %d: %s", index, e)
                return ""
        log.log(f"PANEL_PROMPT_RESPONSE [#{index}]", result)
        return result

    return list(await asyncio.gather(*(one(i, s) for i, s in enumerate(scenes))))


def build_panel_image_prompt(prompt: str) -> str:
    return fill(PANEL_IMAGE_TPL, prompt=prompt)


def fallback_title(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return "Comic-" + now.strftime("%Y%m%dT%H%M")


async def generate_comic_title(g: GAIC, story: str, style: str) -> str:
    """Generate a short comic book title, or a timestamped fallback."""
    prompt = fill(COMIC_TITLE_TPL, story=story[:500], style=style)
    try:
        title = await g.generate_text(prompt)
    except Exception as e:
        logger.error("Comic title generation failed: %s", e)
        return fallback_title()
    title = title.strip().replace('"', "").replace("'", "").strip()
    return title or fallback_title()
