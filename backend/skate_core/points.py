from __future__ import annotations

import logging
from typing import Dict, Iterable, Optional, Tuple

from .models import PointsTableEntry

logger = logging.getLogger(__name__)

# Points awarded when the table has no exact (placement, field size) cell.
MISSING_POINTS = 0.0


class PointsLookup:
    """Exact-match lookup over the sparse points table.

    No interpolation between neighbouring placements or field sizes: a gap in
    the table is worth :data:`MISSING_POINTS`.
    """

    def __init__(self, entries: Iterable[PointsTableEntry] = ()) -> None:
        self._table: Dict[Tuple[int, int], float] = {}
        for entry in entries:
            key = (entry.placement, entry.field_size)
            if key in self._table:
                logger.warning(
                    "Duplicate points row for placement %s of %s; keeping %s",
                    entry.placement,
                    entry.field_size,
                    self._table[key],
                )
                continue
            self._table[key] = entry.points

    def __len__(self) -> int:
        return len(self._table)

    def lookup(self, placement: int, field_size: int) -> Optional[float]:
        return self._table.get((placement, field_size))

    def points_for(self, placement: int, field_size: int) -> float:
        points = self.lookup(placement, field_size)
        if points is None:
            logger.debug("No points for placement %s of %s", placement, field_size)
            return MISSING_POINTS
        return points
