"""Structural change detection for published snapshots."""

from dataclasses import fields, is_dataclass
from typing import Any, Mapping
import logging

logger = logging.getLogger(__name__)


def structural_value(value: Any) -> Any:
    """Reduce a snapshot to plain comparable values.

    Mappings become dicts, dataclasses become field dicts and any set of token
    ids becomes a frozenset, so that two snapshots compare equal whenever their
    contents do regardless of container type or ordering.
    """
    if is_dataclass(value) and not isinstance(value, type):
        return (
            type(value).__name__,
            {item.name: structural_value(getattr(value, item.name)) for item in fields(value)},
        )
    if isinstance(value, Mapping):
        return {key: structural_value(item) for key, item in value.items()}
    if isinstance(value, (set, frozenset)):
        return frozenset(structural_value(item) for item in value)
    if isinstance(value, (list, tuple)):
        return tuple(structural_value(item) for item in value)
    return value


class ChangeDetector:
    def __init__(self) -> None:
        self._published = 0
        self._suppressed = 0

    @property
    def published(self) -> int:
        return self._published

    @property
    def suppressed(self) -> int:
        return self._suppressed

    def differs(self, previous: Any, update: Any) -> bool:
        return structural_value(previous) != structural_value(update)

    def should_publish(self, label: str, previous: Any, update: Any) -> bool:
        if self.differs(previous, update):
            self._published += 1
            return True
        self._suppressed += 1
        logger.debug("Suppressed unchanged %s snapshot", label)
        return False
