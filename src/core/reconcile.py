"""
Reconciliation of server responses into the canonical roster.

The server's copy of a record always wins: a saved record replaces the
entry with the same id, or is prepended when the id is new. The Roster
container keeps at most one record per id.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional

Record = Mapping[str, Any]


def reconcile(records: List[Record], saved: Record) -> List[Record]:
    """Return a new list with `saved` replacing its id or prepended."""
    saved_id = saved.get("id")
    replaced = False
    merged = []
    for record in records:
        if record.get("id") == saved_id:
            if not replaced:
                merged.append(saved)
                replaced = True
            continue
        merged.append(record)
    if not replaced:
        merged.insert(0, saved)
    return merged


def remove(records: List[Record], record_id: Any) -> List[Record]:
    return [record for record in records if record.get("id") != record_id]


def dedupe(records: Iterable[Record]) -> List[Record]:
    """Keep the first record seen for each id."""
    seen = set()
    unique = []
    for record in records:
        record_id = record.get("id")
        if record_id in seen:
            continue
        seen.add(record_id)
        unique.append(record)
    return unique


class Roster:
    """Canonical in-memory collection for one feature area."""

    def __init__(self, records: Optional[Iterable[Record]] = None):
        self._records: List[Record] = dedupe(records or [])

    @property
    def records(self) -> List[Record]:
        # Callers get a copy; only the methods below mutate the roster
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, record_id: Any) -> bool:
        return self.get(record_id) is not None

    def get(self, record_id: Any) -> Optional[Record]:
        for record in self._records:
            if record.get("id") == record_id:
                return record
        return None

    def replace_all(self, records: Iterable[Record]) -> None:
        self._records = dedupe(records)

    def reconcile(self, saved: Record) -> bool:
        """Merge a saved record; returns True when it replaced an existing one."""
        existed = saved.get("id") in self
        self._records = reconcile(self._records, saved)
        return existed

    def remove(self, record_id: Any) -> bool:
        before = len(self._records)
        self._records = remove(self._records, record_id)
        return len(self._records) != before

    def count_by(self, field_name: str) -> Dict[Any, int]:
        counts: Dict[Any, int] = {}
        for record in self._records:
            key = record.get(field_name)
            counts[key] = counts.get(key, 0) + 1
        return counts
