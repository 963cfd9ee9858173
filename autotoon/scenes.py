# scenes.py
from typing import List

from autotoon.config import DEFAULT_WORDS_PER_SCENE


def word_count(text: str) -> int:
    return len(text.split())


def split_story_into_scenes(story: str, max_words_per_scene: int = DEFAULT_WORDS_PER_SCENE) -> List[str]:
    """
    Split a story into scenes of roughly max_words_per_scene words.

    Sentences are taken on ". " boundaries and packed greedily; a scene is
    closed as soon as the next sentence would bring it to the budget. A single
    sentence longer than the budget becomes a scene of its own.
    """
    story = story.strip()
    if not story:
        return []

    scenes: List[str] = []
    current = ""

    for sentence in story.split(". "):
        if not sentence.endswith("."):
            sentence += "."

        candidate = current + sentence + " "
        if word_count(candidate) < max_words_per_scene:
            current = candidate
        else:
            if current.strip():
                scenes.append(current.strip())
            current = sentence + " "

    if current.strip():
        scenes.append(current.strip())

    return scenes
