"""Choose between the external catalog and the built-in seed catalog."""
import logging

from eb5_quizzes.models import QuizCatalog

logger = logging.getLogger(__name__)


class CatalogResolver:
    """Resolve the active catalog so the rest of the pipeline never sees an empty one.

    The seed is used until an external catalog with at least one quiz arrives.
    After that, empty external snapshots are ignored and the last accepted
    catalog stays active.

    ``choose`` only computes the outcome; ``commit`` records it. Callers that
    build derived state from the catalog commit once that build succeeded.
    """

    def __init__(self, seed: QuizCatalog):
        self.seed = seed
        self.current = seed
        self.accepted_external = False

    def choose(self, external: QuizCatalog, reset: bool = False) -> tuple[QuizCatalog, bool]:
        """Return ``(catalog, accepted_external)`` for ``external``.

        With ``reset`` any previously accepted catalog is forgotten, e.g. after
        a language change.
        """
        if reset:
            current, accepted = self.seed, False
        else:
            current, accepted = self.current, self.accepted_external
        if current.is_empty:
            logger.warning("Resolved catalog is empty; re-applying seed catalog")
            current = self.seed
        if not external.is_empty:
            return external, True
        if not accepted:
            return self.seed, False
        logger.info("Ignoring empty external catalog; keeping %d quizzes", len(current.quizzes))
        return current, True

    def commit(self, catalog: QuizCatalog, accepted_external: bool) -> None:
        self.current = catalog
        self.accepted_external = accepted_external
