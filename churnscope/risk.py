"""
churnscope.risk

Composite churn risk score used to rank subscriptions for retention outreach.

Sub-scores (all non-negative integers):

    tenure_risk   0-3   <1 month = 3, <3 = 2, <6 = 1, else 0
    product_risk  1-3   event pass = 3, basic product = 2, else 1
    winback_risk  0,2   2 x winback
    payment_risk  0-2   voucher = 2, uncategorised payment = 1, else 0
    grace_risk    0-3   2 x standard grace + 1 x 90-day grace

The composite is their sum and always lies in [1, 13].
"""

from __future__ import annotations

from typing import List

import pandas as pd

from .features import BASIC_PRODUCT, EVENT_PASS_PRODUCT, OTHER
from .utils import case_when

# (minimum score, label), checked high to low
RISK_LEVELS = [
    (9, "Very High Risk"),
    (6, "High Risk"),
    (3, "Medium Risk"),
]
LOW_RISK = "Low Risk"
RISK_CATEGORIES: List[str] = [label for _, label in RISK_LEVELS] + [LOW_RISK]

MIN_RISK_SCORE = 1
MAX_RISK_SCORE = 13

RISK_COLUMNS: List[str] = [
    "tenure_risk",
    "product_risk",
    "winback_risk",
    "payment_risk",
    "grace_risk",
    "churn_risk_score",
    "risk_category",
]


def tenure_risk(months: pd.Series) -> pd.Series:
    """Strict upper bounds, most recent bucket first. Absent tenure scores 0."""
    return case_when(months.index, [months < 1, months < 3, months < 6], [3, 2, 1], 0)


def product_risk(product: pd.Series) -> pd.Series:
    return case_when(
        product.index,
        [product.eq(EVENT_PASS_PRODUCT), product.eq(BASIC_PRODUCT)],
        [3, 2],
        1,
    )


def payment_risk(category: pd.Series) -> pd.Series:
    return case_when(category.index, [category.eq("Voucher"), category.eq(OTHER)], [2, 1], 0)


def risk_category(score: pd.Series) -> pd.Series:
    return case_when(
        score.index,
        [score >= floor for floor, _ in RISK_LEVELS],
        [label for _, label in RISK_LEVELS],
        LOW_RISK,
    )


def score_risk(enriched: pd.DataFrame) -> pd.DataFrame:
    """
    Append risk sub-scores, the composite score and its category.

    Expects the output of ``derive_features``; returns a new frame.
    """
    out = enriched.copy()
    out["tenure_risk"] = tenure_risk(enriched["tenure_months"])
    out["product_risk"] = product_risk(enriched["product_name"])
    out["winback_risk"] = 2 * enriched["is_winback"].astype("int64")
    out["payment_risk"] = payment_risk(enriched["payment_category"])
    out["grace_risk"] = (
        2 * enriched["in_grace_period"].astype("int64")
        + enriched["in_grace_period_90"].astype("int64")
    )
    out["churn_risk_score"] = (
        out["tenure_risk"]
        + out["product_risk"]
        + out["winback_risk"]
        + out["payment_risk"]
        + out["grace_risk"]
    ).astype("int64")
    out["risk_category"] = risk_category(out["churn_risk_score"])
    return out


def top_risk(scored: pd.DataFrame, n: int = 100) -> pd.DataFrame:
    """
    Highest-risk subscriptions for outreach, score descending.
    Ties keep subscription key order so the list is reproducible.
    """
    ranked = scored.sort_values(
        ["churn_risk_score", "subscription_key"], ascending=[False, True], kind="stable"
    )
    return ranked.head(n)
