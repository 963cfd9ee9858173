# pdf.py
import asyncio
import io
import logging
import random
import re
import string
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

import img2pdf
import requests
from PIL import Image

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = {"png": "PNG", "jpg": "JPEG", "jpeg": "JPEG"}
CONTENT_TYPES = {"image/png": "png", "image/jpeg": "jpeg", "image/jpg": "jpeg"}

# 72 dpi makes one image pixel exactly one PDF point
_PIXEL_LAYOUT = img2pdf.get_fixed_dpi_layout_fun((72, 72))


@dataclass
class PanelImage:
    data: bytes
    format: str  # file extension, e.g. "png" or "jpg"
    source: str = ""


def slugify(text: str, fallback: str = "item") -> str:
    text = text.strip().lower()
    text = re.sub(r"[^a-z0-9]+", "-", text).strip("-")
    return text or fallback


def comic_pdf_filename(title: str) -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=6))
    return f"{slugify(title, 'comic')}_{suffix}.pdf"


def _prepare(image: PanelImage) -> Optional[bytes]:
    """Bytes img2pdf can embed as-is, or None when the image must be skipped."""
    fmt = SUPPORTED_FORMATS.get(image.format.lower().lstrip("."))
    if fmt is None:
        logger.warning("Unsupported image format %r for %s, skipping",
                       image.format, image.source or "image")
        return None
    try:
        img = Image.open(io.BytesIO(image.data))
        img.load()
    except Exception as e:
        logger.warning("Error decoding image %s: %s", image.source or "image", e)
        return None
    if img.format != fmt:
        logger.warning("Image %s is %s, not %s, skipping",
                       image.source or "image", img.format, fmt)
        return None
    if fmt == "JPEG" or img.mode in ("RGB", "L"):
        return image.data

    # Alpha, palette and 16-bit PNGs are flattened onto white
    rgba = img.convert("RGBA")
    flat = Image.new("RGB", rgba.size, (255, 255, 255))
    flat.paste(rgba, mask=rgba.split()[-1])
    buf = io.BytesIO()
    flat.save(buf, format="PNG")
    return buf.getvalue()


def assemble_pdf(images: Iterable[PanelImage]) -> bytes:
    """
    Build a PDF with one full-bleed page per image, in the given order.

    Each page is exactly as large as its image in pixels. Images in an
    unsupported or unreadable format are skipped with a warning.
    """
    pages = [b for b in (_prepare(img) for img in images) if b is not None]
    if not pages:
        raise ValueError("No images provided for PDF creation")
    return img2pdf.convert(pages, layout_fun=_PIXEL_LAYOUT,
                           engine=img2pdf.Engine.internal)


def load_images_from_paths(paths: Iterable[Path]) -> List[PanelImage]:
    images = []
    for p in paths:
        p = Path(p)
        try:
            images.append(PanelImage(p.read_bytes(), p.suffix.lstrip("."), str(p)))
        except OSError as e:
            logger.error("Error reading image %s: %s", p, e)
    return images


def _format_from_response(url: str, content_type: str) -> str:
    fmt = CONTENT_TYPES.get(content_type.split(";")[0].strip().lower())
    if fmt:
        return fmt
    return Path(url.split("?")[0]).suffix.lstrip(".")


async def fetch_images(urls: Iterable[str], timeout: float = 30.0) -> List[PanelImage]:
    """Download remote images in order. A URL that fails is logged and dropped."""
    images = []
    for url in urls:
        try:
            resp = await asyncio.to_thread(requests.get, url, timeout=timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            logger.error("Error fetching image %s: %s", url, e)
            continue
        fmt = _format_from_response(url, resp.headers.get("Content-Type", ""))
        images.append(PanelImage(resp.content, fmt, url))
    return images
