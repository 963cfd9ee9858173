import asyncio
import re

import pytest
import requests

from conftest import solid_image

from autotoon.pdf import (PanelImage, assemble_pdf, comic_pdf_filename,
                          fetch_images, load_images_from_paths, slugify)

MEDIABOX_RE = re.compile(rb"/MediaBox\s*\[\s*0\s+0\s+([\d.]+)\s+([\d.]+)\s*\]")


def page_sizes(pdf: bytes):
    return [(float(w), float(h)) for w, h in MEDIABOX_RE.findall(pdf)]


def test_one_page_per_image_sized_to_pixels():
    images = [PanelImage(solid_image((300, 200)), "png"),
              PanelImage(solid_image((120, 400), fmt="JPEG"), "jpg")]
    pdf = assemble_pdf(images)
    assert pdf.startswith(b"%PDF")
    assert page_sizes(pdf) == [(300.0, 200.0), (120.0, 400.0)]


def test_unsupported_and_broken_images_are_skipped():
    images = [PanelImage(solid_image((64, 64), fmt="GIF"), "gif", "a.gif"),
              PanelImage(b"garbage", "png", "b.png"),
              PanelImage(solid_image((50, 60)), "png", "c.png")]
    assert page_sizes(assemble_pdf(images)) == [(50.0, 60.0)]


def test_transparent_png_is_flattened():
    pdf = assemble_pdf([PanelImage(solid_image((40, 30), mode="RGBA"), "png")])
    assert page_sizes(pdf) == [(40.0, 30.0)]


def test_no_usable_images_raises():
    with pytest.raises(ValueError):
        assemble_pdf([])
    with pytest.raises(ValueError):
        assemble_pdf([PanelImage(b"x", "webp")])


def test_slugify_and_pdf_filename():
    assert slugify("  The Glowing Crystal! ") == "the-glowing-crystal"
    assert slugify("!!!", "comic") == "comic"
    assert re.fullmatch(r"the-glowing-crystal_[a-z0-9]{6}\.pdf",
                        comic_pdf_filename("The Glowing Crystal"))


def test_load_images_from_paths_skips_missing(tmp_path):
    p = tmp_path / "panel_0.png"
    p.write_bytes(solid_image((10, 10)))
    images = load_images_from_paths([p, tmp_path / "missing.png"])
    assert [(i.format, i.source) for i in images] == [("png", str(p))]


class FakeResponse:
    def __init__(self, content, content_type="", status=200):
        self.content = content
        self.headers = {"Content-Type": content_type}
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


def test_fetch_images_drops_failing_urls(monkeypatch):
    png = solid_image((20, 20))
    responses = {
        "http://x/a": FakeResponse(png, "image/png"),
        "http://x/b.png": FakeResponse(b"", status=404),
        "http://x/c.jpg?sig=1": FakeResponse(solid_image((20, 20), fmt="JPEG")),
    }

    def fake_get(url, timeout):
        if url == "http://x/down":
            raise requests.ConnectionError("refused")
        return responses[url]

    monkeypatch.setattr(requests, "get", fake_get)
    images = asyncio.run(fetch_images(["http://x/a", "http://x/b.png", "http://x/down",
                                       "http://x/c.jpg?sig=1"]))
    assert [(i.source, i.format) for i in images] == [("http://x/a", "png"),
                                                      ("http://x/c.jpg?sig=1", "jpg")]
