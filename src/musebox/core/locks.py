"""Lock set: configuration fields pinned across resets and overwrites."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator

from .fields import ALL_FIELDS, ConfigField, parse_field

logger = logging.getLogger(__name__)


class LockSet:
    """Set of pinned configuration fields.

    Membership is a plain boolean per field.  Locking is independent of the
    field's value: a field may be locked while holding its default.
    """

    def __init__(self, fields: Iterable[str | ConfigField] = ()) -> None:
        self._locked: set[ConfigField] = {parse_field(f) for f in fields}

    def toggle(self, field: str | ConfigField) -> bool:
        """Flip the lock on *field* and return the new state."""
        key = parse_field(field)
        if key in self._locked:
            self._locked.discard(key)
            locked = False
        else:
            self._locked.add(key)
            locked = True
        logger.debug("Lock on '%s' is now %s.", key.value, locked)
        return locked

    def is_locked(self, field: str | ConfigField) -> bool:
        return parse_field(field) in self._locked

    def toggle_all(self) -> None:
        """Clear every lock if any is set, otherwise lock every known field."""
        if self._locked:
            self.unlock_all()
        else:
            self.lock_all()

    def lock_all(self) -> None:
        self._locked = set(ALL_FIELDS)

    def unlock_all(self) -> None:
        self._locked.clear()

    def to_list(self) -> list[str]:
        """Sorted wire identifiers, for persistence and API responses."""
        return sorted(f.value for f in self._locked)

    @classmethod
    def from_list(cls, values: Iterable[str]) -> LockSet:
        """Rebuild a lock set from persisted identifiers, skipping unknown ones."""
        fields: list[ConfigField] = []
        for value in values:
            try:
                fields.append(parse_field(value))
            except KeyError:
                logger.warning("Ignoring unknown locked field '%s'.", value)
        return cls(fields)

    def __contains__(self, field: object) -> bool:
        if not isinstance(field, (str, ConfigField)):
            return False
        try:
            return self.is_locked(field)
        except KeyError:
            return False

    def __iter__(self) -> Iterator[ConfigField]:
        return iter(sorted(self._locked, key=lambda f: f.value))

    def __len__(self) -> int:
        return len(self._locked)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LockSet):
            return NotImplemented
        return self._locked == other._locked

    def __repr__(self) -> str:
        return f"LockSet({self.to_list()})"
