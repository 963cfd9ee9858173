import asyncio
import re

from conftest import FakeClient

from autotoon.genai_client import OracleError
from autotoon.prompt_builder import (PromptLogger, build_panel_prompts,
                                     build_style_guide, fill,
                                     generate_comic_title, load_prompt)


def scene_of(prompt: str) -> str:
    return re.search(r"Current Panel \(\d+\): (.*)", prompt).group(1)


def test_fill_only_replaces_named_placeholders():
    assert fill("{a} and {b} and {\"json\": 1}", a="x") == "x and {b} and {\"json\": 1}"


def test_templates_have_no_unfilled_placeholders():
    filled = fill(load_prompt("panel_prompt"), style="manga", style_guide="guide",
                  panel_number=1, scene="scene", previous_scene="None")
    assert not re.search(r"\{[a-z_]+\}", filled)


def test_style_guide_is_visual_only_and_embeds_inputs():
    g = FakeClient(text=lambda p: "bold lines, warm palette")
    guide = asyncio.run(build_style_guide(g, "A fox finds a crystal.", "watercolor"))
    assert guide == "bold lines, warm palette"
    prompt = g.text_calls[0]
    assert "do NOT include any text, dialogue" in prompt
    assert "User selected style: watercolor" in prompt
    assert "Story: A fox finds a crystal." in prompt


def test_style_guide_failure_returns_empty_string():
    g = FakeClient(text=lambda p: OracleError("boom"))
    assert asyncio.run(build_style_guide(g, "story text", "manga")) == ""


def test_panel_prompts_keep_order_and_continuity():
    scenes = ["first scene", "second scene", "third scene"]
    g = FakeClient(text=lambda p: "prompt for " + scene_of(p))
    prompts = asyncio.run(build_panel_prompts(g, scenes, "guide", "manga"))

    assert prompts == ["prompt for first scene", "prompt for second scene",
                       "prompt for third scene"]
    by_scene = {scene_of(p): p for p in g.text_calls}
    assert "Previous Panel Summary: None" in by_scene["first scene"]
    assert "Previous Panel Summary: first scene" in by_scene["second scene"]
    assert "Current Panel (3): third scene" in by_scene["third scene"]
    assert all("Style Guide: guide" in p for p in g.text_calls)


def test_failed_prompt_leaves_an_empty_slot():
    scenes = [f"scene {i}" for i in range(6)]

    def reply(prompt):
        scene = scene_of(prompt)
        return OracleError("quota") if scene in ("scene 1", "scene 4") else scene.upper()

    prompts = asyncio.run(build_panel_prompts(FakeClient(text=reply), scenes, "guide", "noir"))
    assert prompts == ["SCENE 0", "", "SCENE 2", "SCENE 3", "", "SCENE 5"]


def test_prompt_generation_is_bounded_and_order_preserving():
    scenes = [f"scene {i}" for i in range(12)]
    # later scenes answer first
    g = FakeClient(text=lambda p: scene_of(p),
                   text_delay=lambda p: 0.02 * (12 - int(scene_of(p).split()[1])) / 12)
    prompts = asyncio.run(build_panel_prompts(g, scenes, "guide", "manga", concurrency=5))
    assert prompts == scenes
    assert g.max_in_flight <= 5
    assert g.max_in_flight > 1


def test_comic_title_is_cleaned():
    g = FakeClient(text=lambda p: '  "The Glowing Crystal"\n')
    assert asyncio.run(generate_comic_title(g, "story", "manga")) == "The Glowing Crystal"
    assert "Story: story..." in g.text_calls[0]


def test_comic_title_falls_back_to_timestamp():
    for reply in ("", OracleError("down")):
        g = FakeClient(text=lambda p, r=reply: r)
        title = asyncio.run(generate_comic_title(g, "story", "manga"))
        assert re.fullmatch(r"Comic-\d{8}T\d{4}", title)


def test_prompt_logger_writes_blocks(tmp_path):
    log = PromptLogger(tmp_path / "out" / "prompts_used.txt")
    log.log("STEP", "  content  ")
    log.flush()
    assert (tmp_path / "out" / "prompts_used.txt").read_text() == "\n===== STEP =====\ncontent\n"
