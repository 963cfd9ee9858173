# config.py
import os
from pathlib import Path

from dotenv import load_dotenv

# ------------------ ENV & CONFIG ------------------
load_dotenv()

ROOT = Path(__file__).parent

GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
# fal_client reads FAL_KEY; FAL_API_KEY is accepted for older .env files
FAL_KEY = os.getenv("FAL_KEY") or os.getenv("FAL_API_KEY", "")

# "gemini" renders panels with the Gemini image model, "fal" with fal.ai nano banana
IMAGE_BACKEND = os.getenv("IMAGE_BACKEND", "gemini").lower()

# Models (override via env if your account uses different names)
TEXT_MODEL = os.getenv("TEXT_MODEL", "gemini-2.0-flash")
IMAGE_MODEL = os.getenv(
    "IMAGE_MODEL", "gemini-2.0-flash-preview-image-generation")
FAL_IMAGE_ENDPOINT = os.getenv("FAL_IMAGE_ENDPOINT", "fal-ai/nano-banana")

DATA_DIR = Path(os.getenv("DATA_DIR", Path.cwd() / "data"))
GENERATED_DIR = Path(os.getenv("GENERATED_DIR", DATA_DIR / "generated"))
LIBRARY_DIR = Path(os.getenv("LIBRARY_DIR", DATA_DIR / "library"))
SETTINGS_DIR = Path(os.getenv("SETTINGS_DIR", DATA_DIR / "settings"))

# 0 keeps sessions for the lifetime of the process
SESSION_TTL_SECONDS = int(os.getenv("SESSION_TTL_SECONDS", "0"))

HOST = os.getenv("HOST", "127.0.0.1")
PORT = int(os.getenv("PORT", "3001"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
PRINT_PROMPTS = os.getenv("PRINT_PROMPTS", "0") == "1"

# ------------------ PIPELINE TUNING ---------------
DEFAULT_WORDS_PER_SCENE = 35
PROMPT_CONCURRENCY = 5

IMAGE_MAX_RETRIES = 2
IMAGE_CALL_TIMEOUT = 30.0
# Real panels are typically 1MB+; anything this small is treated as corrupt
MIN_IMAGE_BYTES = 100_000

PLACEHOLDER_SIZE = 512
