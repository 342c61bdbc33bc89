"""
churnscope.aggregate

Group-by summaries over enriched subscriptions:

    aggregate_churn(enriched, "product_name", measure="tenure_months")
    aggregate_churn(enriched, ["in_grace_period", "in_grace_period_90"])

Aggregation is split into an additive part (counts and sums) and a final
step (rates and means), so partial results computed on separate shards can
be merged with ``merge_partials`` and give the same table as a single pass.
Missing key values form their own group; group counts always add up to the
number of input rows.
"""

from __future__ import annotations

import calendar
from typing import Dict, Iterable, List, Optional, Sequence, Union

import pandas as pd

from .errors import EmptyGroupError
from .features import TENURE_CATEGORIES, UNKNOWN
from .risk import RISK_CATEGORIES

Keys = Union[str, Sequence[str]]

# Groupings with an inherent order; these are never re-sorted by rate
ORDINAL_ORDERS: Dict[str, List[str]] = {
    "tenure_category": TENURE_CATEGORIES + [UNKNOWN],
    "risk_category": RISK_CATEGORIES,
    "start_month": list(calendar.month_abbr[1:]),
}
CHRONOLOGICAL_KEYS = ("cohort_month", "start_year", "start_quarter")


def _keys(by: Keys) -> List[str]:
    return [by] if isinstance(by, str) else list(by)


def churn_rate(churned: int, total: int, group: Optional[object] = None) -> float:
    """Churned share of a group. Undefined for an empty group."""
    if total == 0:
        raise EmptyGroupError(group)
    return churned / total


# ---------------------------------------------------------------------------
# Additive step
# ---------------------------------------------------------------------------

def partial_aggregate(enriched: pd.DataFrame, by: Keys, measure: Optional[str] = None) -> pd.DataFrame:
    """
    Per-group counts and sums only: subscriptions, churned and, with a
    measure, <measure>_sum / <measure>_count (non-missing values).
    """
    keys = _keys(by)
    aggs = {
        "subscriptions": ("churned", "size"),
        "churned": ("churned", "sum"),
    }
    if measure:
        aggs[f"{measure}_sum"] = (measure, "sum")
        aggs[f"{measure}_count"] = (measure, "count")

    grouped = enriched.groupby(keys, dropna=False, sort=False, observed=True)
    partial = grouped.agg(**aggs).reset_index()
    partial["churned"] = partial["churned"].astype("int64")
    return partial


def merge_partials(partials: Iterable[pd.DataFrame], by: Keys) -> pd.DataFrame:
    """Combine partial aggregates computed on disjoint shards."""
    keys = _keys(by)
    frames = list(partials)
    if not frames:
        raise EmptyGroupError()
    stacked = pd.concat(frames, ignore_index=True)
    value_cols = [c for c in stacked.columns if c not in keys]
    return (
        stacked.groupby(keys, dropna=False, sort=False, observed=True)[value_cols]
        .sum()
        .reset_index()
    )


# ---------------------------------------------------------------------------
# Final step
# ---------------------------------------------------------------------------

def _natural_order(col: pd.Series) -> pd.Series:
    order = ORDINAL_ORDERS.get(col.name)
    if order is None:
        return col
    return col.map({label: i for i, label in enumerate(order)}).fillna(len(order))


def sort_aggregate(table: pd.DataFrame, by: Keys, sort_by: Optional[str] = None) -> pd.DataFrame:
    """
    Ordinal / chronological groupings keep their natural order; everything
    else is sorted descending by `sort_by` (default churn_rate), ties broken
    by the keys so the result never depends on input order.
    """
    keys = _keys(by)
    natural = any(k in ORDINAL_ORDERS or k in CHRONOLOGICAL_KEYS for k in keys)
    if natural and sort_by is None:
        ordered = table.sort_values(keys, key=_natural_order, kind="stable", na_position="last")
    else:
        col = sort_by or "churn_rate"
        ordered = table.sort_values(
            [col] + keys,
            ascending=[False] + [True] * len(keys),
            kind="stable",
            na_position="last",
        )
    return ordered.reset_index(drop=True)


def finalize_aggregate(
    partial: pd.DataFrame,
    by: Keys,
    measure: Optional[str] = None,
    sort_by: Optional[str] = None,
) -> pd.DataFrame:
    """
    Turn counts and sums into churn_rate (and avg_<measure>).

    Raises EmptyGroupError when there are no groups at all or when any group
    has zero subscriptions.
    """
    keys = _keys(by)
    if partial.empty:
        raise EmptyGroupError()
    empty = partial[partial["subscriptions"] == 0]
    if not empty.empty:
        raise EmptyGroupError(tuple(empty.iloc[0][keys]))

    out = partial[keys + ["subscriptions", "churned"]].copy()
    out["subscriptions"] = out["subscriptions"].astype("int64")
    out["churned"] = out["churned"].astype("int64")
    out["churn_rate"] = out["churned"] / out["subscriptions"]

    if measure:
        total = partial[f"{measure}_sum"].astype("float64")
        n = partial[f"{measure}_count"]
        # mean of a measure with no observed values stays NaN
        out[f"avg_{measure}"] = total / n.where(n > 0)

    return sort_aggregate(out, keys, sort_by)


def aggregate_churn(
    enriched: pd.DataFrame,
    by: Keys,
    measure: Optional[str] = None,
    sort_by: Optional[str] = None,
) -> pd.DataFrame:
    """
    Churn summary per group of `by`.

    Returns
    -------
    pd.DataFrame
        One row per group: the key column(s), subscriptions, churned,
        churn_rate (0-1) and, if `measure` is given, avg_<measure>.
    """
    partial = partial_aggregate(enriched, by, measure)
    return finalize_aggregate(partial, by, measure, sort_by)
