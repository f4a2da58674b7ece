"""
Snapshot storage for the full working state.

The snapshot is a JSON document rewritten wholesale at startup. Writes go
to a temporary sibling file which replaces the target atomically.
"""

import logging
import os
from pathlib import Path

from pydantic import ValidationError

from rss_relay.models import PersistedState

logger = logging.getLogger(__name__)


class SnapshotStore:
    """Loads and atomically saves the persisted state."""

    def __init__(self, path: str | Path):
        """
        Initialize the store with the snapshot path.

        Parameters
        ----------
        path : str | Path
            Path to the JSON snapshot file.
        """
        self.path = Path(path)

    def load(self) -> PersistedState | None:
        """
        Load the last saved state.

        Returns
        -------
        PersistedState | None
            The saved state, or None on first run. An unreadable or
            invalid snapshot is logged and treated as absent.
        """
        if not self.path.exists():
            logger.info("No snapshot at %s, starting from empty state", self.path)
            return None

        try:
            state = PersistedState.model_validate_json(self.path.read_bytes())
        except (OSError, ValidationError) as e:
            logger.warning("Ignoring unreadable snapshot %s: %s", self.path, e)
            return None

        logger.info(
            "Loaded snapshot: %d fingerprint(s), %d feed(s), %d destination(s)",
            len(state.hashes),
            len(state.urls),
            len(state.ids),
        )
        return state

    def save(self, state: PersistedState) -> None:
        """
        Atomically replace the snapshot with ``state``.

        Parameters
        ----------
        state : PersistedState
            The state to persist.

        Raises
        ------
        OSError
            If the snapshot cannot be written.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(f"{self.path.name}.tmp")

        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                f.write(state.model_dump_json())
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise

        logger.info("Snapshot written to %s", self.path)
