"""Incremental per-category shape counts."""

from __future__ import annotations

import logging
from collections import Counter
from typing import TYPE_CHECKING, Dict, Iterable

if TYPE_CHECKING:
    from .models import BoundingShapeData

logger = logging.getLogger(__name__)


class CategoryStatistics:
    """
    Tracks how many shapes are assigned to each category.

    Counts are updated on every add/remove and include nested parts.
    They always equal a full recount of the tracked shapes.
    """

    def __init__(self) -> None:
        self._counts: Counter = Counter()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CategoryStatistics):
            return NotImplemented
        return self.as_dict() == other.as_dict()

    def __repr__(self) -> str:
        return f"CategoryStatistics({self.as_dict()!r})"

    def add_shape(self, shape: BoundingShapeData) -> None:
        """Count a shape and all of its parts."""
        self._counts.update(_category_names(shape))

    def remove_shape(self, shape: BoundingShapeData) -> None:
        """
        Stop counting a shape and all of its parts.

        Raises:
            ValueError: If the shape was never counted
        """
        removed = Counter(_category_names(shape))
        for name, amount in removed.items():
            if self._counts[name] < amount:
                raise ValueError(f"Cannot remove {amount} shape(s) of uncounted category '{name}'")

        self._counts.subtract(removed)
        for name in removed:
            if self._counts[name] == 0:
                del self._counts[name]

    def count(self, name: str) -> int:
        """Number of shapes assigned to a category."""
        return self._counts.get(name, 0)

    @property
    def total(self) -> int:
        return sum(self._counts.values())

    def as_dict(self) -> Dict[str, int]:
        """Category name -> shape count (categories without shapes are omitted)."""
        return {name: count for name, count in self._counts.items() if count > 0}

    def clear(self) -> None:
        self._counts.clear()

    @classmethod
    def recount(cls, shapes: Iterable[BoundingShapeData]) -> CategoryStatistics:
        """Build statistics from scratch for a collection of top-level shapes."""
        statistics = cls()
        for shape in shapes:
            statistics.add_shape(shape)
        return statistics


def _category_names(shape: BoundingShapeData) -> Iterable[str]:
    return (item.category.name for item in shape.iter_shapes())
