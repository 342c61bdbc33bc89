"""
churnscope.report

Segment breakdowns and headline numbers built on the aggregator. Every
table here is recomputed from the enriched subscriptions on demand.
"""

from __future__ import annotations

from typing import Dict, Optional

import numpy as np
import pandas as pd

from .aggregate import aggregate_churn, churn_rate
from .features import LOYAL, TENURE_CATEGORIES

# report name -> (group keys, optional measure)
SEGMENTS = {
    "churn_by_product": (["product_name"], "tenure_months"),
    "churn_by_offer_period": (["offer_period_std"], None),
    "churn_by_acquisition_channel": (["acquisition_channel_group"], None),
    "churn_by_tenure": (["tenure_category"], None),
    "winback_analysis": (["is_winback"], "tenure_months"),
    "churn_by_payment": (["payment_category"], None),
    "grace_period_analysis": (["in_grace_period", "in_grace_period_90"], None),
    "churn_by_region": (["region"], None),
    "churn_by_start_month": (["start_month"], None),
    "cohort_analysis": (["cohort_month", "product_name"], "tenure_months"),
}


# ---------------------------------------------------------------------------
# Headline metrics
# ---------------------------------------------------------------------------

def overall_metrics(enriched: pd.DataFrame) -> Dict[str, object]:
    total = int(len(enriched))
    churned = int(enriched["churned"].sum())
    start = enriched["subscription_start_date"]
    return {
        "total_subscriptions": total,
        "unique_customers": int(enriched["customer_id"].nunique()),
        "unique_subscriptions": int(enriched["subscription_id"].nunique()),
        "start_date_min": start.min(),
        "start_date_max": start.max(),
        "active_subscriptions": total - churned,
        "churned_subscriptions": churned,
        "churn_rate": churn_rate(churned, total),
        "voluntary_churn": int(enriched["churn_type"].eq("Voluntary").sum()),
        "involuntary_churn": int(enriched["churn_type"].eq("Involuntary").sum()),
    }


# ---------------------------------------------------------------------------
# Segment tables
# ---------------------------------------------------------------------------

def churn_by_country(enriched: pd.DataFrame) -> pd.DataFrame:
    """Churn by country plus the voluntary share of churned subscriptions."""
    df = enriched.assign(voluntary=enriched["churn_type"].eq("Voluntary").astype(int))
    table = aggregate_churn(df, "country", measure="voluntary")
    voluntary = table["avg_voluntary"] * table["subscriptions"]
    table["voluntary_share"] = (voluntary / table["churned"].where(table["churned"] > 0)).round(4)
    return table.drop(columns=["avg_voluntary"])


def partner_vs_direct(enriched: pd.DataFrame) -> pd.DataFrame:
    df = enriched.assign(channel=np.where(enriched["has_partner"], "Partner", "Direct"))
    return aggregate_churn(df, "channel")


def promotion_impact(enriched: pd.DataFrame) -> pd.DataFrame:
    df = enriched.assign(promo_status=np.where(enriched["has_promo"], "With Promo", "Without Promo"))
    return aggregate_churn(df, "promo_status")


def risk_validation(scored: pd.DataFrame) -> pd.DataFrame:
    """Observed churn per risk category, highest mean score first."""
    return aggregate_churn(
        scored, "risk_category", measure="churn_risk_score", sort_by="avg_churn_risk_score"
    )


def churn_reasons(enriched: pd.DataFrame) -> pd.DataFrame:
    """Reason categories among churned subscriptions only."""
    churned = enriched[enriched["churned"]]
    counts = churned["churn_reason_category"].value_counts()
    table = counts.rename_axis("churn_reason_category").reset_index(name="subscriptions")
    total = int(table["subscriptions"].sum())
    table["share"] = table["subscriptions"] / total if total else np.nan
    return table.sort_values(
        ["subscriptions", "churn_reason_category"], ascending=[False, True], kind="stable"
    ).reset_index(drop=True)


def churn_type_by_product(enriched: pd.DataFrame) -> pd.DataFrame:
    churned = enriched[enriched["churned"]]
    table = pd.crosstab(churned["product_name"], churned["churn_type"])
    table.columns.name = None
    return table.reset_index()


def build_reports(scored: pd.DataFrame) -> Dict[str, pd.DataFrame]:
    """
    All segment tables for a scored subscription table, keyed by report name.
    """
    reports: Dict[str, pd.DataFrame] = {}
    for name, (keys, measure) in SEGMENTS.items():
        reports[name] = aggregate_churn(scored, keys, measure=measure)

    reports["churn_by_country"] = churn_by_country(scored)
    reports["partner_vs_direct"] = partner_vs_direct(scored)
    reports["promotion_impact"] = promotion_impact(scored)
    reports["churn_reasons"] = churn_reasons(scored)
    reports["churn_type_by_product"] = churn_type_by_product(scored)
    reports["risk_validation"] = risk_validation(scored)
    return reports


# ---------------------------------------------------------------------------
# Key findings
# ---------------------------------------------------------------------------

def _rate_for(table: pd.DataFrame, key: str, value: object) -> Optional[float]:
    row = table[table[key] == value]
    return float(row["churn_rate"].iloc[0]) if len(row) else None


def _label(value: object) -> Optional[object]:
    return None if pd.isna(value) else value


def key_findings(scored: pd.DataFrame, reports: Dict[str, pd.DataFrame]) -> Dict[str, object]:
    """Headline numbers for the summary; rates are fractions, None if the group is absent."""
    metrics = overall_metrics(scored)
    by_product = reports["churn_by_product"]
    by_country = reports["churn_by_country"]
    by_tenure = reports["churn_by_tenure"]
    winback = reports["winback_analysis"]

    return {
        "overall_churn_rate": metrics["churn_rate"],
        "highest_churn_product": _label(by_product["product_name"].iloc[0]),
        "highest_churn_product_rate": float(by_product["churn_rate"].iloc[0]),
        "highest_churn_country": _label(by_country["country"].iloc[0]),
        "winback_churn_rate": _rate_for(winback, "is_winback", True),
        "non_winback_churn_rate": _rate_for(winback, "is_winback", False),
        "new_tenure_churn_rate": _rate_for(by_tenure, "tenure_category", TENURE_CATEGORIES[0]),
        "loyal_tenure_churn_rate": _rate_for(by_tenure, "tenure_category", LOYAL),
        "very_high_risk": int(scored["risk_category"].eq("Very High Risk").sum()),
        "high_risk": int(scored["risk_category"].eq("High Risk").sum()),
    }
