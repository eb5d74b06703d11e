"""Per-primitive build status: which kinds failed, and why."""

from __future__ import annotations

from collections.abc import Iterator


class StatusMap:
    """Map of status key (usually a primitive kind) -> unique error messages.

    A key recorded with no messages is valid. Repeated failures of the same
    kind collapse onto one key; identical messages are stored once.
    """

    def __init__(self) -> None:
        self._errors: dict[str, list[str]] = {}

    def clear(self) -> None:
        self._errors.clear()

    def append_valid(self, key: str) -> None:
        self._errors.setdefault(key, [])

    def append_error(self, key: str, message: str = "") -> None:
        messages = self._errors.setdefault(key, [])
        if message and message not in messages:
            messages.append(message)

    def valid_key(self, key: str) -> bool:
        return not self._errors.get(key)

    def invalid_key(self, key: str) -> bool:
        return not self.valid_key(key)

    def invalid_keys(self) -> frozenset[str]:
        return frozenset(key for key, messages in self._errors.items() if messages)

    def errors(self, key: str) -> list[str]:
        return list(self._errors.get(key, ()))

    def keys(self) -> Iterator[str]:
        return iter(self._errors)

    def update(self, other: StatusMap) -> None:
        """Union ``other`` into this map."""
        for key, messages in other._errors.items():
            self.append_valid(key)
            for message in messages:
                self.append_error(key, message)

    def invalid_key_summary(self) -> str:
        """``"kind (msg1, msg2), kind2 (msg)"`` for every invalid key, in insertion order."""
        return ", ".join(
            f"{key} ({', '.join(messages)})" for key, messages in self._errors.items() if messages
        )

    def to_dict(self) -> dict[str, list[str]]:
        return {key: list(messages) for key, messages in self._errors.items() if messages}

    @property
    def has_errors(self) -> bool:
        return any(self._errors.values())

    def __repr__(self) -> str:
        return f"StatusMap({self.to_dict()!r})"
