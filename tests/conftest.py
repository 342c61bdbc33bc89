from datetime import date

import pandas as pd
import pytest

from churnscope.normalize import normalize_subscriptions
from churnscope.pipeline import enrich_subscriptions

AS_OF = date(2025, 1, 31)


def serial(d) -> str:
    """Spreadsheet serial for a calendar date, as exported (text)."""
    return str((pd.Timestamp(d) - pd.Timestamp("1899-12-30")).days)


BASE_RECORD = {
    "Customer_ID": "1001",
    "Subscription_ID": "5001",
    "Subscription_key": "900001",
    "Subscription_version": "1",
    "Subscription_latest": "1",
    "Subscription_start_date": serial("2024-07-31"),
    "Expiry_date": serial("2025-07-31"),
    "Product_name": "TOD Total",
    "Country": "Egypt",
    "Offer_period": "monthly",
    "Payment_method": "Card",
    "Subscription_status": "active",
    "Subscription_type": "new",
    "Subscription_type_gp": "",
    "Winback_type": "",
    "Subscription_churn_type": "",
    "churn_reason": "",
    "Acquisition_channel": "Web",
    "Source_system": "Direct",
    "Partner_name": "",
    "Coupon_code": "",
    "Campaign_ID": "",
    "promo": "0",
    "In_gp": "0",
    "In_gp_90": "0",
    "daily_weekly_flag": "0",
    "Tier": "T1A",
    "Dir_indir": "Direct",
    "D2C_B2B": "D2C",
}


@pytest.fixture
def as_of():
    return AS_OF


@pytest.fixture
def make_raw():
    """Build a raw export frame: one row per overrides dict."""
    def _make(*overrides):
        rows = [{**BASE_RECORD, **o} for o in (overrides or ({},))]
        return pd.DataFrame(rows, dtype=str)
    return _make


@pytest.fixture
def make_scored(make_raw):
    """Raw overrides -> fully enriched and scored frame."""
    def _make(*overrides):
        normalized, _ = normalize_subscriptions(make_raw(*overrides))
        return enrich_subscriptions(normalized, AS_OF)
    return _make
