"""
Best-effort compensation for writes that span independent stores.

Each forward step that succeeds pushes the action that undoes it. When a
later step fails the stack is unwound newest-first. Compensation is not a
rollback: an undo that fails is logged and the rest still run, and the
caller keeps reporting the original error.
"""
from typing import Callable, List, Tuple
import logging

logger = logging.getLogger(__name__)


class CompensationStack:

    def __init__(self, name: str, error_id: str = None):
        self.name = name
        self.error_id = error_id
        self._actions: List[Tuple[str, Callable[[], None]]] = []
        self.failed: List[str] = []

    def push(self, description: str, action: Callable[[], None]) -> None:
        self._actions.append((description, action))

    def __len__(self):
        return len(self._actions)

    @property
    def pending(self) -> List[str]:
        return [description for description, _ in reversed(self._actions)]

    def run(self) -> List[str]:
        """
        Execute pending compensations once, newest first.

        Returns the descriptions of the actions that failed.
        """
        while self._actions:
            description, action = self._actions.pop()
            try:
                action()
                logger.info(f"[{self.name}] compensated: {description}")
            except Exception as exc:
                self.failed.append(description)
                logger.error(
                    f"[{self.name}] compensation failed ({description}) "
                    f"error_id={self.error_id}: {exc}"
                )
        return list(self.failed)

    def clear(self) -> None:
        """Forget pending actions once every forward step has succeeded."""
        self._actions.clear()
