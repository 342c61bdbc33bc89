"""
churnscope.features

Derived analytic fields for normalized subscription records.

    enriched = derive_features(normalized, as_of=date(2025, 1, 31))

Every field is a function of the row itself plus the processing date
`as_of`; nothing depends on other rows or on row order. Lookups are exact,
case-sensitive matches, and every rule ends in an explicit fallback.
"""

from __future__ import annotations

from datetime import date
from typing import Dict, List, Union

import numpy as np
import pandas as pd

from .schema import CHURNED_STATUS, DAYS_PER_MONTH
from .utils import case_when, flag

DateLike = Union[date, str, pd.Timestamp]

UNKNOWN = "Unknown"
OTHER = "Other"

# ---------------------------------------------------------------------------
# Business rules
# ---------------------------------------------------------------------------

# Upper bound in months (inclusive) -> label, checked in order
TENURE_BINS = [
    (1, "New (0-1 month)"),
    (3, "Early (1-3 months)"),
    (6, "Growing (3-6 months)"),
    (12, "Established (6-12 months)"),
]
LOYAL = "Loyal (12+ months)"
TENURE_CATEGORIES: List[str] = [label for _, label in TENURE_BINS] + [LOYAL]

EVENT_PASS_PRODUCT = "AFCON"
BASIC_PRODUCT = "TOD Shows"
PREMIUM_PRODUCTS = ("TOD 4K", "TOD Total")

PRODUCT_TIERS: Dict[str, str] = {
    "TOD 4K": "Premium",
    "TOD Total": "Standard",
    BASIC_PRODUCT: "Basic",
    EVENT_PASS_PRODUCT: "Event Pass",
}

OFFER_PERIODS: Dict[str, str] = {
    "daily": "Daily",
    "weekly": "Weekly",
    "monthly": "Monthly",
    "6-months": "Long-term",
    "custom": "Custom",
}

MOBILE_APP_CHANNELS = ("Apple",)

PAYMENT_CATEGORIES: Dict[str, str] = {
    "Card": "Card",
    "voucher": "Voucher",
    "iOS": "Digital Wallet",
    "web": "Digital Wallet",
}

CHURN_TYPES: Dict[str, str] = {
    "voluntary churn": "Voluntary",
    "Involuntary churn": "Involuntary",
}

CHURN_REASONS: Dict[str, str] = {
    "Payment failed": "Payment Issue",
    "Customer churn": "Customer Decision",
    "Broadcaster churn": "Content Issue",
}

TIER_1_COUNTRIES = ("Egypt", "United Arab Emirates")
TIER_2_COUNTRIES = ("Morocco", "Iraq")

REGIONS: Dict[str, str] = {
    "Egypt": "North Africa",
    "Morocco": "North Africa",
    "United Arab Emirates": "Middle East",
    "Jordan": "Middle East",
    "Iraq": "Middle East",
}

VALUE_TIERS: Dict[str, str] = {
    "T1A": "High Value",
    "T2": "Medium Value",
    "T3B": "Low Value",
}

NOT_WINBACK = "Not Winback"
ACTIVE = "Active"

# Every field added by derive_features, in output order
FEATURE_COLUMNS: List[str] = [
    "churned",
    "churn_label",
    "subscription_days",
    "subscription_months",
    "tenure_days",
    "tenure_months",
    "days_until_expiry",
    "tenure_category",
    "start_month",
    "start_quarter",
    "start_year",
    "cohort_month",
    "product_tier",
    "offer_period_std",
    "is_premium",
    "is_event_pass",
    "is_new_subscriber",
    "is_winback",
    "is_continuing",
    "winback_category",
    "is_direct",
    "is_b2b",
    "has_partner",
    "acquisition_channel_group",
    "payment_category",
    "has_promo",
    "has_coupon",
    "has_campaign",
    "churn_type",
    "churn_reason_category",
    "in_grace_period",
    "in_grace_period_90",
    "country_tier",
    "region",
    "has_multiple_versions",
    "is_latest_version",
    "is_daily_weekly",
    "short_tenure",
    "expiring_soon",
    "stability_score",
    "value_tier",
]


# ---------------------------------------------------------------------------
# Rule helpers
# ---------------------------------------------------------------------------

def lookup(s: pd.Series, table: Dict[str, str], default: str = OTHER) -> pd.Series:
    """Exact-match mapping with a fallback for unmapped or absent values."""
    return s.map(table).fillna(default).astype(object)


def tenure_category(months: pd.Series) -> pd.Series:
    """
    Ordered tenure bins, upper bounds inclusive: <=1, <=3, <=6, <=12, >12.
    Absent tenure maps to 'Unknown'.
    """
    conditions = [months <= bound for bound, _ in TENURE_BINS] + [months > TENURE_BINS[-1][0]]
    return case_when(months.index, conditions, TENURE_CATEGORIES, UNKNOWN)


def acquisition_channel_group(channel: pd.Series, source_system: pd.Series) -> pd.Series:
    # channel rules take priority over the source system rule
    return case_when(
        channel.index,
        [channel.eq("Web"), channel.isin(MOBILE_APP_CHANNELS), source_system.eq("Partner")],
        ["Web", "Mobile App", "Partner"],
        OTHER,
    )


def absent_first(s: pd.Series, table: Dict[str, str], default: str) -> pd.Series:
    """'Active' when the value is absent, else table lookup with a fallback."""
    return case_when(
        s.index,
        [s.isna()] + [s.eq(raw) for raw in table],
        [ACTIVE] + list(table.values()),
        default,
    )


def country_tier(country: pd.Series) -> pd.Series:
    return case_when(
        country.index,
        [country.isin(TIER_1_COUNTRIES), country.isin(TIER_2_COUNTRIES)],
        ["Tier 1", "Tier 2"],
        "Tier 3",
    )


def _days_between(later: pd.Series, earlier: pd.Series) -> pd.Series:
    return (later - earlier).dt.days.astype("float64")


# ---------------------------------------------------------------------------
# Feature deriver
# ---------------------------------------------------------------------------

def derive_features(subs: pd.DataFrame, as_of: DateLike) -> pd.DataFrame:
    """
    Add the derived feature set to a normalized subscription table.

    Parameters
    ----------
    subs : pd.DataFrame
        Output of ``normalize_subscriptions``. Not modified.
    as_of : date-like
        Processing date used for tenure and days-until-expiry.

    Returns
    -------
    pd.DataFrame
        Copy of `subs` with the columns in ``FEATURE_COLUMNS`` appended.
    """
    as_of = pd.Timestamp(as_of).normalize()
    idx = subs.index
    out = subs.copy()

    start = subs["subscription_start_date"]
    expiry = subs["expiry_date"]
    product = subs["product_name"]

    # --- target ---
    out["churned"] = subs["subscription_status"].eq(CHURNED_STATUS).astype(bool)
    out["churn_label"] = np.where(out["churned"], "Churned", ACTIVE).astype(object)

    # --- temporal ---
    out["subscription_days"] = _days_between(expiry, start)
    out["subscription_months"] = out["subscription_days"] / DAYS_PER_MONTH
    out["tenure_days"] = _days_between(pd.Series(as_of, index=idx), start)
    out["tenure_months"] = out["tenure_days"] / DAYS_PER_MONTH
    out["days_until_expiry"] = _days_between(expiry, pd.Series(as_of, index=idx))
    out["tenure_category"] = tenure_category(out["tenure_months"])

    out["start_month"] = start.dt.strftime("%b").astype(object)
    out["start_quarter"] = start.dt.quarter.astype("Int64")
    out["start_year"] = start.dt.year.astype("Int64")
    out["cohort_month"] = start.dt.to_period("M").dt.to_timestamp()

    # --- product ---
    out["product_tier"] = lookup(product, PRODUCT_TIERS)
    out["offer_period_std"] = lookup(subs["offer_period"], OFFER_PERIODS)
    out["is_premium"] = product.isin(PREMIUM_PRODUCTS)
    out["is_event_pass"] = product.eq(EVENT_PASS_PRODUCT)

    # --- subscriber behaviour ---
    out["is_new_subscriber"] = flag(subs["subscription_type"], "new")
    out["is_winback"] = flag(subs["subscription_type"], "winback")
    # continuation lives on the grace-period type field, not subscription_type
    out["is_continuing"] = flag(subs["subscription_type_gp"], "continue")
    out["winback_category"] = subs["winback_type"].fillna(NOT_WINBACK).astype(object)

    # --- channel ---
    out["is_direct"] = flag(subs["dir_indir"], "Direct")
    out["is_b2b"] = flag(subs["d2c_b2b"], "B2B")
    out["has_partner"] = subs["partner_name"].notna()
    out["acquisition_channel_group"] = acquisition_channel_group(
        subs["acquisition_channel"], subs["source_system"]
    )
    out["payment_category"] = lookup(subs["payment_method"], PAYMENT_CATEGORIES)

    # --- promotion ---
    out["has_promo"] = flag(subs["promo"], 1)
    out["has_coupon"] = subs["coupon_code"].notna()
    out["has_campaign"] = subs["campaign_id"].notna()

    # --- churn characteristics ---
    out["churn_type"] = absent_first(subs["subscription_churn_type"], CHURN_TYPES, UNKNOWN)
    out["churn_reason_category"] = absent_first(subs["churn_reason"], CHURN_REASONS, OTHER)
    out["in_grace_period"] = flag(subs["in_gp"], 1)
    out["in_grace_period_90"] = flag(subs["in_gp_90"], 1)

    # --- geography ---
    out["country_tier"] = country_tier(subs["country"])
    out["region"] = lookup(subs["country"], REGIONS)

    # --- versions & risk flags ---
    out["has_multiple_versions"] = subs["subscription_version"].gt(1).fillna(False).astype(bool)
    out["is_latest_version"] = flag(subs["subscription_latest"], 1)
    out["is_daily_weekly"] = flag(subs["daily_weekly_flag"], 1)
    out["short_tenure"] = (out["tenure_months"] < 3).astype(bool)
    out["expiring_soon"] = ((out["days_until_expiry"] > 0) & (out["days_until_expiry"] <= 7)).astype(bool)

    out["stability_score"] = (
        2 * out["is_new_subscriber"].astype(int)
        + 3 * out["is_winback"].astype(int)
        + out["has_multiple_versions"].astype(int)
        - 2 * out["is_continuing"].astype(int)
    ).astype("int64")
    out["value_tier"] = lookup(subs["tier"], VALUE_TIERS, UNKNOWN)

    return out
