"""
Email prefix selection.

Each approval gets a mailbox alias picked at random from a fixed vocabulary,
never the alias chosen by the immediately preceding approval. The "last
prefix" cell is shared by every approval, so it is guarded by a lock.
"""

import random
import threading
from typing import Iterable, Optional

from .config import DEFAULT_EMAIL_PREFIXES
from .exceptions import ValidationError


class EmailPrefixSelector:
    """Random alias picker that never repeats its previous pick."""

    def __init__(
        self,
        vocabulary: Iterable[str] = DEFAULT_EMAIL_PREFIXES,
        last_prefix: Optional[str] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        # De-duplicate while keeping the configured order
        self._vocabulary = tuple(dict.fromkeys(p.strip().lower() for p in vocabulary if p.strip()))
        if len(self._vocabulary) < 2:
            raise ValidationError(
                code="prefix_vocabulary_too_small",
                message="At least two distinct email prefixes are required",
                details={"vocabulary": list(self._vocabulary)},
            )
        self._last_prefix = last_prefix
        self._rng = rng or random.Random()
        self._lock = threading.Lock()

    @property
    def vocabulary(self) -> tuple[str, ...]:
        return self._vocabulary

    @property
    def last_prefix(self) -> Optional[str]:
        with self._lock:
            return self._last_prefix

    def pick(self) -> str:
        """Pick a prefix different from the previous pick and remember it."""
        with self._lock:
            choices = [p for p in self._vocabulary if p != self._last_prefix]
            prefix = self._rng.choice(choices)
            self._last_prefix = prefix
            return prefix
