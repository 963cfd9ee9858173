# pipeline.py
import asyncio
import json
import logging
import random
import string
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from autotoon import config
from autotoon.genai_client import GAIC, get_client
from autotoon.images import PanelImageGenerator
from autotoon.library import LibraryStore
from autotoon.models import LibraryItem, Session
from autotoon.pdf import (PanelImage, assemble_pdf, comic_pdf_filename,
                          load_images_from_paths, slugify)
from autotoon.prompt_builder import (PromptLogger, build_panel_prompts,
                                     build_style_guide, fallback_title,
                                     generate_comic_title)
from autotoon.scenes import split_story_into_scenes

logger = logging.getLogger(__name__)

LATEST_PDF = "comic_book.pdf"


@dataclass
class ExportResult:
    title: str
    filename: str
    pdf: bytes
    item: Optional[LibraryItem] = None


def _write_pdfs(pdf: bytes, *paths: Path):
    for p in paths:
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(pdf)


async def export_comic(g: Optional[GAIC], images: List[PanelImage], library: LibraryStore,
                       generated_dir: Path, session: Optional[Session] = None) -> ExportResult:
    """
    Assemble `images` into a PDF named after a generated title.

    The PDF is written to the library's pdf folder and as the latest export
    in `generated_dir`. When a session is given, a library entry pointing at
    the PDF is saved as well.
    """
    story = session.story if session else ""
    style = session.style if session else ""
    if g is None or not story:
        title = fallback_title()
    else:
        title = await generate_comic_title(g, story, style)

    pdf = await asyncio.to_thread(assemble_pdf, images)
    filename = comic_pdf_filename(title)

    await asyncio.to_thread(_write_pdfs, pdf, library.pdf_dir / filename,
                            Path(generated_dir) / LATEST_PDF)
    logger.info("Exported %r as %s (%d bytes)", title, filename, len(pdf))

    item = None
    if session is not None:
        item = library.create({
            "title": title[:200],
            "story": session.story,
            "style": session.style,
            "scenes": session.scenes,
            "styleGuide": session.styleGuide,
            "prompts": session.prompts,
            "images": session.relativeImagePaths,
            "pdfPath": f"/library/pdfs/{filename}",
        })
    return ExportResult(title, filename, pdf, item)


async def run_pipeline(story_text: str, style: str, out_root: Path,
                       g: Optional[GAIC] = None, sleep=asyncio.sleep) -> ExportResult:
    """Run every stage for one story and write panels, manifest and PDF to out_root."""
    out_root.mkdir(parents=True, exist_ok=True)
    prompt_log = PromptLogger(out_root / "prompts_used.txt")
    g = g or get_client()

    scenes = split_story_into_scenes(story_text)
    logger.info("Scenes: %d", len(scenes))

    style_guide = await build_style_guide(g, story_text, style, log=prompt_log)
    prompts = await build_panel_prompts(g, scenes, style_guide, style, log=prompt_log)
    logger.info("Prompts: %d", len(prompts))

    generator = PanelImageGenerator(g, out_root / "panels", sleep=sleep, log=prompt_log)
    image_paths = await generator.generate(prompts)

    session = Session(
        id=out_root.name, story=story_text, style=style, scenes=scenes,
        styleGuide=style_guide, prompts=prompts,
        imagePaths=[str(p) for p in image_paths],
        relativeImagePaths=[f"panels/{p.name}" for p in image_paths],
    )
    library = LibraryStore(out_root / "library")
    result = await export_comic(g, load_images_from_paths(image_paths),
                                library, out_root, session=session)

    manifest = {
        "title": result.title,
        "style": style,
        "styleGuide": style_guide,
        "panels": [
            {"index": i, "scene": scene, "prompt": prompt, "file": f"panels/{path.name}"}
            for i, (scene, prompt, path) in enumerate(zip(scenes, prompts, image_paths))
        ],
        "pdf": f"library/pdfs/{result.filename}",
    }
    (out_root / "manifest.json").write_text(json.dumps(manifest, indent=2), encoding="utf-8")
    prompt_log.flush()
    return result


# ------------------ MAIN ORCHESTRATION -----------
DEMO_STORY = """\
Luna the fox crept through the dark forest at night. The moon was hidden behind thick clouds. \
She heard a soft hum coming from a clearing ahead. Cautiously, she approached the glowing light. \
In the middle of the clearing sat a magical crystal, pulsing with blue light. \
Luna touched it with her nose and the whole forest lit up in bright, cheerful colors.
"""


def main(argv: Optional[List[str]] = None):
    argv = sys.argv[1:] if argv is None else argv
    logging.basicConfig(level=config.LOG_LEVEL,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    if argv and Path(argv[0]).exists():
        story_text = Path(argv[0]).read_text(encoding="utf-8")
        slug = slugify(Path(argv[0]).stem)
    else:
        logger.info("No input file given; using DEMO_STORY.")
        story_text = DEMO_STORY
        slug = "demo-story"
    style = argv[1] if len(argv) > 1 else "manga"

    run_id = "".join(random.choices(string.ascii_lowercase + string.digits, k=6))
    out_dir = Path("output") / f"{slug}-{run_id}"
    result = asyncio.run(run_pipeline(story_text, style, out_dir))
    logger.info("Done. Output at: %s", out_dir)
    logger.info("Comic PDF: %s", out_dir / "library" / "pdfs" / result.filename)


if __name__ == "__main__":
    main()
