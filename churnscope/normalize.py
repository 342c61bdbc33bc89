"""
churnscope.normalize

Turns the raw subscription export into a typed table:

    normalized, field_errors = normalize_subscriptions(raw)

- categoricals are trimmed, blanks and NULL-like markers become NaN
- integer ids/flags become nullable Int64
- spreadsheet serial dates become datetime64 (NaT when absent or invalid)

Nothing is dropped here. Quality counts are read-only diagnostics that the
caller decides what to do with.
"""

from __future__ import annotations

import logging
from typing import List, Tuple

import numpy as np
import pandas as pd

from .errors import FieldError, SchemaError
from .schema import (
    CATEGORICAL_COLUMNS,
    DATE_COLUMNS,
    EXCEL_EPOCH,
    FLOAT_COLUMNS,
    INTEGER_COLUMNS,
    KEY_FIELDS,
    MAX_EXCEL_SERIAL,
    REQUIRED_COLUMNS,
)
from .utils import coercion_failures, missing_columns, numericize, standardize_columns, trim_strings

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

def check_schema(df: pd.DataFrame) -> None:
    """
    Raise SchemaError if any required column is missing entirely.
    Expects standardized column names.
    """
    missing = missing_columns(df, REQUIRED_COLUMNS)
    if missing:
        raise SchemaError(missing)


# ---------------------------------------------------------------------------
# Field parsers
# ---------------------------------------------------------------------------

def excel_serial_to_date(s: pd.Series) -> pd.Series:
    """
    Convert spreadsheet day offsets (day 0 = 1899-12-30) to dates.

    Fractional offsets are truncated to the day. Anything that is not a
    positive number inside the representable range becomes NaT.
    """
    serial = numericize(s)
    serial = serial.where((serial > 0) & (serial <= MAX_EXCEL_SERIAL))
    return EXCEL_EPOCH + pd.to_timedelta(np.floor(serial), unit="D")


def to_int(s: pd.Series) -> pd.Series:
    values = numericize(s)
    values = values.where(np.isfinite(values) & (values.abs() < 2 ** 53))
    return np.trunc(values).astype("Int64")


def to_float(s: pd.Series) -> pd.Series:
    values = numericize(s)
    return values.where(np.isfinite(values)).astype("float64")


_PARSERS = (
    (INTEGER_COLUMNS, to_int, "integer"),
    (FLOAT_COLUMNS, to_float, "number"),
    (DATE_COLUMNS, excel_serial_to_date, "serial date"),
)


# ---------------------------------------------------------------------------
# Normalizer
# ---------------------------------------------------------------------------

def normalize_subscriptions(raw: pd.DataFrame) -> Tuple[pd.DataFrame, List[FieldError]]:
    """
    Type every known column of the raw export.

    Returns
    -------
    normalized : pd.DataFrame
        New frame, same index and row order as `raw`. Unknown columns are
        carried through untouched.
    field_errors : list of FieldError
        One entry per non-blank value that could not be coerced. The value
        itself is absent in `normalized`.
    """
    df = standardize_columns(raw)
    check_schema(df)

    out = df.copy()
    field_errors: List[FieldError] = []

    for c in CATEGORICAL_COLUMNS:
        if c in out.columns:
            out[c] = trim_strings(df[c])

    for columns, parse, expected in _PARSERS:
        for c in columns:
            if c not in out.columns:
                continue
            given = trim_strings(df[c])
            parsed = parse(given)
            bad = coercion_failures(given, parsed)
            if len(bad):
                log.warning("%s: %d value(s) not readable as %s", c, len(bad), expected)
                field_errors.extend(FieldError(c, idx, given.at[idx], expected) for idx in bad)
            out[c] = parsed

    return out, field_errors


# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------

def quality_report(subs: pd.DataFrame) -> pd.DataFrame:
    """
    Data quality counts over a normalized table, as a metric/value frame.
    """
    key = subs["subscription_key"]
    start = subs["subscription_start_date"]
    expiry = subs["expiry_date"]

    # rows without a key count as one shared key
    duplicate_keys = int(key.duplicated(keep=False).sum())
    missing_dates = int((start.isna() | expiry.isna()).sum())
    invalid_order = int((start > expiry).sum())

    versions = subs.groupby("subscription_id")["subscription_version"].nunique()
    multi_version = int((versions > 1).sum())

    rows = [
        ("rows", int(len(subs))),
        ("duplicate_subscription_keys", duplicate_keys),
        ("missing_dates", missing_dates),
        ("invalid_date_order", invalid_order),
    ]
    rows += [(f"missing_{c}", int(subs[c].isna().sum())) for c in KEY_FIELDS]
    rows += [
        ("multi_version_subscriptions", multi_version),
        ("distinct_countries", int(subs["country"].nunique())),
        ("distinct_products", int(subs["product_name"].nunique())),
    ]
    return pd.DataFrame(rows, columns=["metric", "value"])


DISTRIBUTION_COLUMNS = ("subscription_status", "product_name", "country")


def value_distribution(subs: pd.DataFrame, column: str) -> pd.DataFrame:
    """Row count and share per value of `column`, absent values included, largest first."""
    counts = subs[column].value_counts(dropna=False)
    dist = counts.rename_axis(column).reset_index(name="subscriptions")
    dist["share"] = dist["subscriptions"] / max(len(subs), 1)
    return dist.sort_values(
        ["subscriptions", column], ascending=[False, True], kind="stable", na_position="last"
    ).reset_index(drop=True)


def missing_summary(subs: pd.DataFrame) -> pd.DataFrame:
    """Columns with at least one absent value, most incomplete first."""
    n = max(len(subs), 1)
    counts = subs.isna().sum()
    summary = pd.DataFrame(
        {
            "column": counts.index,
            "missing_count": counts.values.astype(int),
            "missing_pct": (counts.values / n * 100).round(2),
        }
    )
    summary = summary[summary["missing_count"] > 0]
    return summary.sort_values("missing_pct", ascending=False, kind="stable").reset_index(drop=True)


_ISSUE_METRICS = {"duplicate_subscription_keys", "missing_dates", "invalid_date_order"} | {
    f"missing_{c}" for c in KEY_FIELDS
}


def log_quality(report: pd.DataFrame) -> None:
    for metric, value in report.itertuples(index=False):
        if metric in _ISSUE_METRICS and value:
            log.warning("quality: %s = %s", metric, value)
        else:
            log.info("quality: %s = %s", metric, value)
