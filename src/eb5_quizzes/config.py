"""Application configuration."""
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from eb5_quizzes.db import DEFAULT_DB_PATH

DEFAULT_CONTENT_DIR = str(Path(__file__).parent / "content")
DEFAULT_LANGUAGE = "en"
SUPPORTED_LANGUAGES = ("en", "zh", "vi", "ko")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def normalize_language(tag: Optional[str]) -> str:
    """Map a language tag onto a supported language, falling back to English."""
    if not tag:
        return DEFAULT_LANGUAGE
    tag = tag.strip().lower().replace("_", "-").split("-")[0]
    return tag if tag in SUPPORTED_LANGUAGES else DEFAULT_LANGUAGE


@dataclass
class AppConfig:
    db_path: str = DEFAULT_DB_PATH
    content_dir: str = DEFAULT_CONTENT_DIR
    language: Optional[str] = None  # None = use the stored preference
    log_level: str = "WARNING"

    def __post_init__(self):
        if self.language is not None:
            self.language = normalize_language(self.language)
        self.log_level = self.log_level.upper()
        if self.log_level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level {self.log_level!r}; expected one of {', '.join(LOG_LEVELS)}")
