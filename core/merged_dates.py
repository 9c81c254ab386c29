from __future__ import annotations

from itertools import accumulate
from typing import Iterable, List

import pandas as pd


def carry_forward(dates: Iterable[str]) -> List[str]:
    """Fill blank dates with the last non-blank one seen, in the given order.

    Leading blanks stay blank since nothing precedes them.
    """
    filled = accumulate(dates, lambda last, current: current or last, initial="")
    return list(filled)[1:]


def fill_merged_dates(frame: pd.DataFrame, column: str = "date") -> pd.DataFrame:
    """Rebuild merged date cells. Must run on sheet row order, before any grouping."""
    if frame.empty or column not in frame.columns:
        return frame
    out = frame.copy()
    out[column] = carry_forward(out[column].fillna("").astype(str).tolist())
    return out
