"""
In-memory index of item fingerprints already notified.

Not synchronized: callers hold the state store's write lock.
"""

from collections.abc import Iterable, Iterator


class DedupIndex:
    """Set of seen fingerprints, iterated in ascending order."""

    def __init__(self, fingerprints: Iterable[int] = ()):
        self._seen: set[int] = set(fingerprints)

    def contains(self, fp: int) -> bool:
        """Return True if ``fp`` has been seen."""
        return fp in self._seen

    def insert(self, fp: int) -> bool:
        """
        Add a fingerprint.

        Returns
        -------
        bool
            True if the fingerprint was not present before.
        """
        if fp in self._seen:
            return False
        self._seen.add(fp)
        return True

    def __contains__(self, fp: object) -> bool:
        return fp in self._seen

    def __len__(self) -> int:
        return len(self._seen)

    def __iter__(self) -> Iterator[int]:
        return iter(sorted(self._seen))
