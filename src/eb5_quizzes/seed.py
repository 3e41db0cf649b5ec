"""Built-in fallback quiz catalog shipped with the application."""
from functools import lru_cache
from pathlib import Path

from eb5_quizzes.content import load_catalog_file
from eb5_quizzes.models import QuizCatalog

CONTENT_DIR = Path(__file__).parent / "content"
SEED_CATALOG_PATH = CONTENT_DIR / "seed_catalog.json"


@lru_cache(maxsize=1)
def default_catalog() -> QuizCatalog:
    """Return the seed catalog used whenever no external catalog is available."""
    return load_catalog_file(SEED_CATALOG_PATH)
