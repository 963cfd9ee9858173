# placeholder.py
"""
Offline stand-in panels.

When the image model keeps failing for a prompt, the panel is still drawn:
the prompt is scanned for a few keywords (setting, mood, time of day,
characters, props) and a simple comic-style scene is painted with Pillow.
The output only depends on the prompt text.
"""
import io
import re
from dataclasses import dataclass

from PIL import Image, ImageDraw, ImageFilter

from autotoon.config import PLACEHOLDER_SIZE


@dataclass
class SceneAnalysis:
    is_outdoor: bool
    has_character: bool
    has_object: bool
    mood: str           # "dark", "bright" or "neutral"
    action: str         # "dynamic" or "static"
    time_of_day: str    # "night" or "day"
    lighting: str       # "magical" or "natural"
    foliage: str        # "lush" or "sparse"


def _has(pattern: str, text: str) -> bool:
    return re.search(pattern, text) is not None


def analyze_prompt(prompt: str) -> SceneAnalysis:
    text = prompt.lower()
    if _has(r"dark|mysterious|scary|ominous", text):
        mood = "dark"
    elif _has(r"happy|bright|cheerful|vibrant", text):
        mood = "bright"
    else:
        mood = "neutral"
    return SceneAnalysis(
        is_outdoor=_has(
            r"forest|tree|outdoor|nature|garden|field|sky|sun|mountain|clearing", text),
        has_character=_has(
            r"fox|character|person|animal|hero|brave|girl|boy|man|woman", text),
        has_object=_has(
            r"crystal|treasure|book|sword|magic|glowing|gem|stone", text),
        mood=mood,
        action="dynamic" if _has(
            r"running|flying|jumping|fighting|approaching|moving|cautiously", text) else "static",
        time_of_day="night" if _has(r"night|dark|moon|evening", text) else "day",
        lighting="magical" if _has(r"glowing|magical|bright", text) else "natural",
        foliage="lush" if _has(r"mushrooms?|ferns?|leaves?|lush", text) else "sparse",
    )


def scene_colors(a: SceneAnalysis) -> dict:
    if a.time_of_day == "night":
        return {"sky": "#1a1a2e", "ground": "#16213e", "accent": "#eeeeee"}
    if a.mood == "dark":
        return {"sky": "#4a4a4a", "ground": "#2d2d2d", "accent": "#888888"}
    if a.is_outdoor:
        return {"sky": "#87ceeb", "ground": "#228b22", "accent": "#ffd700"}
    return {"sky": "#f0f8ff", "ground": "#8b4513", "accent": "#daa520"}


def _hex(c: str) -> tuple:
    c = c.lstrip("#")
    return tuple(int(c[i:i + 2], 16) for i in (0, 2, 4))


def _gradient(size: int, top: str, bottom: str) -> Image.Image:
    top_rgb, bottom_rgb = _hex(top), _hex(bottom)
    img = Image.new("RGB", (size, size))
    draw = ImageDraw.Draw(img)
    for y in range(size):
        t = y / max(1, size - 1)
        row = tuple(int(top_rgb[i] + (bottom_rgb[i] - top_rgb[i]) * t) for i in range(3))
        draw.line([(0, y), (size, y)], fill=row)
    return img


def _draw_sun(img: Image.Image, size: int) -> Image.Image:
    glow = Image.new("RGBA", img.size, (0, 0, 0, 0))
    gd = ImageDraw.Draw(glow)
    cx, cy, r = int(size * 0.8), int(size * 0.2), int(size * 0.08)
    gd.ellipse([cx - r * 2, cy - r * 2, cx + r * 2, cy + r * 2], fill=(255, 224, 102, 90))
    glow = glow.filter(ImageFilter.GaussianBlur(r // 2 or 1))
    gd = ImageDraw.Draw(glow)
    gd.ellipse([cx - r, cy - r, cx + r, cy + r], fill=(255, 224, 102, 220))
    return Image.alpha_composite(img.convert("RGBA"), glow).convert("RGB")


def _draw_ground(draw: ImageDraw.ImageDraw, a: SceneAnalysis, colors: dict, size: int):
    horizon = int(size * 0.7)
    draw.rectangle([0, horizon, size, size], fill=colors["ground"])
    if not a.is_outdoor:
        return
    # grass strokes, denser for lush scenes
    step = 6 if a.foliage == "lush" else 10
    for x in range(0, size, step):
        for y in range(horizon + 4, size, step * 2):
            draw.arc([x, y, x + step, y + step], 200, 340, fill="#2d5016", width=1)


def _draw_character(draw: ImageDraw.ImageDraw, a: SceneAnalysis, size: int):
    if not a.has_character:
        return
    cx = int(size * (0.4 if a.action == "dynamic" else 0.3))
    cy = int(size * 0.6)
    fur, line = "#ff6b35", "#333333"
    # body, head, ears
    draw.ellipse([cx - 25, cy - 15, cx + 25, cy + 15], fill=fur, outline=line, width=2)
    draw.ellipse([cx - 20, cy - 45, cx + 20, cy - 5], fill=fur, outline=line, width=2)
    draw.polygon([(cx - 15, cy - 35), (cx - 10, cy - 45), (cx - 5, cy - 35)], fill=fur, outline=line)
    draw.polygon([(cx + 5, cy - 35), (cx + 10, cy - 45), (cx + 15, cy - 35)], fill=fur, outline=line)
    # eyes, nose
    for ex in (cx - 8, cx + 8):
        draw.ellipse([ex - 3, cy - 31, ex + 3, cy - 25], fill="#000000")
        draw.ellipse([ex, cy - 30, ex + 2, cy - 28], fill="#ffffff")
    draw.polygon([(cx, cy - 20), (cx - 2, cy - 18), (cx + 2, cy - 18)], fill="#000000")
    # tail
    draw.ellipse([cx - 45, cy - 3, cx - 15, cy + 13], fill=fur, outline=line, width=2)


def _draw_object(img: Image.Image, a: SceneAnalysis, size: int) -> Image.Image:
    if not a.has_object:
        return img
    ox, oy = int(size * 0.7), int(size * 0.6)
    layer = Image.new("RGBA", img.size, (0, 0, 0, 0))
    ld = ImageDraw.Draw(layer)
    glow_r = 35 if a.lighting == "magical" else 25
    ld.ellipse([ox - glow_r, oy - 5 - glow_r, ox + glow_r, oy - 5 + glow_r], fill=(0, 255, 255, 50))
    ld.polygon([(ox, oy - 20), (ox - 10, oy), (ox, oy + 15), (ox + 10, oy)],
               fill=(0, 255, 255, 205), outline=(0, 102, 204, 255))
    ld.polygon([(ox, oy - 15), (ox - 5, oy), (ox, oy + 10), (ox + 5, oy)], fill=(255, 255, 255, 150))
    return Image.alpha_composite(img.convert("RGBA"), layer).convert("RGB")


def render_placeholder(prompt: str, size: int = PLACEHOLDER_SIZE) -> Image.Image:
    a = analyze_prompt(prompt)
    colors = scene_colors(a)

    img = _gradient(size, colors["sky"], colors["ground"])
    if a.is_outdoor and a.time_of_day == "day":
        img = _draw_sun(img, size)

    draw = ImageDraw.Draw(img)
    _draw_ground(draw, a, colors, size)
    _draw_character(draw, a, size)
    img = _draw_object(img, a, size)

    # panel border
    draw = ImageDraw.Draw(img)
    draw.rounded_rectangle([2, 2, size - 3, size - 3], radius=8, outline="#000000", width=4)
    return img


def placeholder_png(prompt: str, size: int = PLACEHOLDER_SIZE) -> bytes:
    buf = io.BytesIO()
    render_placeholder(prompt, size).save(buf, format="PNG")
    return buf.getvalue()
