"""
Changesets - field-path/value pairs merged into untyped nested records.

A changeset never touches the record it is applied to: every change is
applied to a deep copy, so a structural failure part way through leaves
nothing half-written.
"""

import copy
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import format_datetime
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

FieldPath = Tuple[str, ...]

LAST_SYNC_TIME_KEY = "last-sync-time"
COMMIT_HASH_KEY = "commit-hash"


class FieldPathError(Exception):
    """Raised when a value cannot be set at a field path."""

    def __init__(self, path: Sequence[str], reason: str):
        self.path = tuple(path)
        self.reason = reason
        super().__init__(f"cannot set {render_path(path)!r}: {reason}")


def render_path(path: Sequence[str]) -> str:
    """Render a field path for display, e.g. ``metadata.annotations.x``."""
    return ".".join(path)


def get_nested_field(obj: Dict[str, Any], *path: str) -> Optional[Any]:
    """Return the value at ``path`` or None if any segment is missing."""
    current: Any = obj
    for key in path:
        if not isinstance(current, dict) or key not in current:
            return None
        current = current[key]
    return current


def set_nested_field(obj: Dict[str, Any], value: Any, path: Sequence[str]) -> None:
    """
    Set ``value`` at ``path`` inside ``obj``, creating intermediate maps.

    Missing keys and keys holding None are replaced by empty maps. Sibling
    keys along the way are left as they are.

    Raises:
        FieldPathError: If the path is empty or traverses a non-map value.
    """
    if not path:
        raise FieldPathError(path, "empty field path")

    current = obj
    for depth, key in enumerate(path[:-1]):
        child = current.get(key)
        if child is None:
            child = {}
            current[key] = child
        elif not isinstance(child, dict):
            raise FieldPathError(
                path,
                f"{render_path(path[: depth + 1])} is a "
                f"{type(child).__name__}, not a map",
            )
        current = child

    current[path[-1]] = value


@dataclass(frozen=True)
class Change:
    """A single value to merge at a nested field path."""

    path: FieldPath
    value: Any

    def __str__(self) -> str:
        return f"{render_path(self.path)}={self.value}"


class Changeset:
    """Ordered set of changes applied together or not at all."""

    def __init__(self, changes: Optional[Sequence[Change]] = None):
        self._changes: List[Change] = list(changes or [])

    def add(self, path: Sequence[str], value: Any) -> "Changeset":
        self._changes.append(Change(tuple(path), value))
        return self

    def __iter__(self) -> Iterator[Change]:
        return iter(self._changes)

    def __len__(self) -> int:
        return len(self._changes)

    def __repr__(self) -> str:
        return f"Changeset({', '.join(str(c) for c in self._changes)})"

    def apply(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply every change to a copy of ``record`` and return the copy.

        Raises:
            FieldPathError: If any change cannot be applied. ``record`` is
                left untouched.
        """
        updated = copy.deepcopy(record)
        for change in self._changes:
            set_nested_field(updated, change.value, change.path)
        return updated


def format_sync_time(now: Optional[datetime] = None) -> str:
    """Format a timestamp as RFC 1123 in GMT, e.g. ``Mon, 02 Jan 2006 15:04:05 GMT``."""
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return format_datetime(now.astimezone(timezone.utc), usegmt=True)


def annotation_path(prefix: str, key: str) -> FieldPath:
    return ("metadata", "annotations", f"{prefix}{key}")


def build_sync_changeset(
    commit_hash: str, prefix: str, now: Optional[datetime] = None
) -> Changeset:
    """Build the last-sync-time and commit-hash annotation changes."""
    return Changeset(
        [
            Change(annotation_path(prefix, LAST_SYNC_TIME_KEY), format_sync_time(now)),
            Change(annotation_path(prefix, COMMIT_HASH_KEY), commit_hash),
        ]
    )
