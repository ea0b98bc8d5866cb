import logging
from contextlib import contextmanager
from threading import Lock

from fastapi import HTTPException

logger = logging.getLogger(__name__)


class MutationGuard:
    """Rejects a repeat of a mutation while the same one is still running.

    Keys are ``(actor, operation, target)``, so different users, or one user
    working on different rows, never block each other.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._inflight: set[tuple[str, str, str | None]] = set()

    @staticmethod
    def _key(actor_id, operation: str, target=None) -> tuple[str, str, str | None]:
        return (str(actor_id), operation, str(target) if target is not None else None)

    @contextmanager
    def hold(self, actor_id, operation: str, target=None):
        key = self._key(actor_id, operation, target)
        with self._lock:
            if key in self._inflight:
                logger.info("Rejected duplicate %s by %s", operation, actor_id)
                raise HTTPException(
                    status_code=409,
                    detail={
                        "code": "mutation_in_progress",
                        "message": "This change is already being saved",
                        "details": {"operation": operation},
                    },
                )
            self._inflight.add(key)
        try:
            yield
        finally:
            with self._lock:
                self._inflight.discard(key)


mutation_guard = MutationGuard()
