from __future__ import annotations

import re
from typing import List, Sequence

import numpy as np
import pandas as pd

from .schema import ABSENT_MARKERS


# -----------------------------
# Column names
# -----------------------------
def standardize_columns(df: pd.DataFrame) -> pd.DataFrame:
    """
    Return a copy with standardized snake_case column names:
    - strip, lower
    - non-word -> underscore
    - trim leading/trailing underscores
    """
    def _clean(c: str) -> str:
        c = str(c).strip().lower()
        c = re.sub(r"[^\w]+", "_", c)
        c = re.sub(r"(^_+|_+$)", "", c)
        return c
    out = df.copy()
    out.columns = [_clean(c) for c in out.columns]
    return out


def missing_columns(df: pd.DataFrame, required: Sequence[str]) -> List[str]:
    """Required names not present in df, in the order given."""
    present = set(df.columns)
    return [c for c in required if c not in present]


# -----------------------------
# Value cleaning helpers
# -----------------------------
def trim_strings(s: pd.Series) -> pd.Series:
    """
    Trim whitespace and turn the absent markers ('', 'NA', 'NULL', ... any case)
    into NaN. Anything else keeps its original text.
    """
    empties = re.compile(r"^(?:%s)$" % "|".join(ABSENT_MARKERS), flags=re.IGNORECASE)
    text = s.astype("object").where(s.notna(), None)
    out = text.map(lambda x: x.strip() if isinstance(x, str) else x)
    absent = out.map(lambda x: x is None or (isinstance(x, str) and bool(empties.match(x))))
    return out.mask(absent, np.nan)


def numericize(s: pd.Series) -> pd.Series:
    """Coerce to float with NaN on errors."""
    return pd.to_numeric(s, errors="coerce")


def coercion_failures(raw: pd.Series, parsed: pd.Series) -> pd.Index:
    """Index labels where a value was given but did not survive coercion."""
    return raw.index[raw.notna() & parsed.isna()]


def flag(s: pd.Series, value: object = 1) -> pd.Series:
    """Plain bool series: True where s equals value, absent counts as False."""
    return s.eq(value).fillna(False).astype(bool)


def case_when(index: pd.Index, conditions: List[pd.Series], choices: List[object], default: object) -> pd.Series:
    """First matching condition wins. Output is object for labels, int64 for scores."""
    conds = [np.asarray(c, dtype=bool) for c in conditions]
    values = np.select(conds, choices, default=default)
    return pd.Series(values, index=index).astype(object if isinstance(default, str) else "int64")
