"""New-sync admission state."""

from __future__ import annotations

import threading

from marksync.core.logging_utils import get_logger
from marksync.observability.metrics import set_accepting_new_syncs

logger = get_logger(__name__)


class SyncAdmission:
    """Whether the service currently issues new sync identifiers.

    Seeded from configuration and flipped at runtime by the hidden toggle route.
    """

    def __init__(self, accepting: bool = True) -> None:
        self._lock = threading.Lock()
        self._accepting = accepting
        set_accepting_new_syncs(accepting)

    @property
    def accepting(self) -> bool:
        with self._lock:
            return self._accepting

    def toggle(self) -> bool:
        """Flip the state and return the new value."""
        with self._lock:
            self._accepting = not self._accepting
            accepting = self._accepting
        set_accepting_new_syncs(accepting)
        logger.info("sync_admission_changed", extra={"accepting": accepting})
        return accepting
