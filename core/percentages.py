from __future__ import annotations

from typing import List, Optional, Sequence

import pandas as pd

from core.aggregation import CategoryValue


def _shares(items: Sequence[CategoryValue], denominator: Optional[float]) -> List[CategoryValue]:
    if denominator is None or pd.isna(denominator) or denominator <= 0:
        return []
    return [CategoryValue(name=item.name, value=item.value / denominator * 100) for item in items]


def percent_of_sum(items: Sequence[CategoryValue]) -> List[CategoryValue]:
    """Shares of the sum of the visible categories themselves."""
    return _shares(items, float(sum(item.value for item in items)))


def percent_of_fixed(items: Sequence[CategoryValue], denominator: Optional[float]) -> List[CategoryValue]:
    """Shares of an externally supplied total, e.g. an explicit total row.

    Not interchangeable with :func:`percent_of_sum`: shares need not add up to 100.
    """
    return _shares(items, denominator)
