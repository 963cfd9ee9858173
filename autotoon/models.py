# models.py
from datetime import datetime, timezone
from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from autotoon.config import DEFAULT_WORDS_PER_SCENE


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ------------------ DATA MODELS -------------------


class Session(BaseModel):
    id: str
    story: str = ""
    style: str = ""
    scenes: List[str] = Field(default_factory=list)
    styleGuide: str = ""
    prompts: List[str] = Field(default_factory=list)
    imagePaths: List[str] = Field(default_factory=list)
    relativeImagePaths: List[str] = Field(default_factory=list)
    createdAt: str = Field(default_factory=utc_now)


class LibraryItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    title: str = Field(min_length=1, max_length=200)
    story: str
    style: str
    scenes: List[str] = Field(default_factory=list)
    styleGuide: str = ""
    prompts: List[str] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list)
    pdfPath: Optional[str] = None
    thumbnail: Optional[str] = None
    createdAt: str = Field(default_factory=utc_now)
    updatedAt: str = Field(default_factory=utc_now)


class AppSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    defaultStyle: str = "manga"
    highResMode: bool = False
    maxConcurrency: int = 4
    defaultWordsPerScene: int = DEFAULT_WORDS_PER_SCENE
    autoSave: bool = True
    darkMode: bool = False
    language: str = "en"
    exportQuality: str = "high"
    notifications: bool = True
    updatedAt: str = Field(default_factory=utc_now)

    @field_validator("maxConcurrency")
    @classmethod
    def clamp_concurrency(cls, v: int) -> int:
        return max(1, min(10, v))

    @field_validator("defaultWordsPerScene")
    @classmethod
    def clamp_words_per_scene(cls, v: int) -> int:
        return max(10, min(100, v))


class ComicStyle(BaseModel):
    id: str
    name: str
    description: str


# ------------------ REQUESTS ----------------------

Story = Annotated[str, Field(min_length=10, max_length=5000)]
Style = Annotated[str, Field(min_length=2, max_length=100)]


class GenerateRequest(BaseModel):
    story: Story
    style: Style


class StyleGuideRequest(BaseModel):
    story: Story
    style: Style


class ScenesRequest(BaseModel):
    story: str = Field(min_length=1)
    # None falls back to the defaultWordsPerScene setting
    maxWordsPerScene: Optional[int] = Field(None, ge=1)


class PromptsRequest(BaseModel):
    scenes: List[str] = Field(min_length=1)
    styleGuide: str = Field(min_length=1)
    style: str = Field(min_length=1)
    sessionId: Optional[str] = None


class ImagesRequest(BaseModel):
    prompts: List[str] = Field(min_length=1)
    sessionId: Optional[str] = None


class ExportRequest(BaseModel):
    sessionId: Optional[str] = None
    dpi: int = Field(100, ge=50, le=300)
    imageUrls: List[str] = Field(default_factory=list)


class SaveComicRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    story: str = Field(min_length=1)
    style: str = Field(min_length=1)
    scenes: List[str]
    styleGuide: str = ""
    prompts: List[str] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list)
    pdfPath: Optional[str] = None
    sessionId: Optional[str] = None
