"""
Column contract for the subscription export.

Names are given in their standardized form (see ``utils.standardize_columns``).
Columns in ``OPTIONAL_COLUMNS`` are typed when present and otherwise ignored;
every other column listed here must exist in the input.
"""

from __future__ import annotations

from typing import List

import pandas as pd

# Spreadsheet serial dates count days from this epoch
EXCEL_EPOCH = pd.Timestamp("1899-12-30")
# Serials above this fall outside the nanosecond Timestamp range (2262-04-11)
MAX_EXCEL_SERIAL = 132_319

DAYS_PER_MONTH = 30.44
CHURNED_STATUS = "churned"

# Text treated as "no value" in any column
ABSENT_MARKERS = ("", "na", "nan", "none", "null")

INTEGER_COLUMNS: List[str] = [
    "customer_id",
    "subscription_id",
    "subscription_version",
    "subscription_latest",
    "in_gp",
    "in_gp_90",
    "daily_weekly_flag",
    "promo",
    "campaign_id",
    "non_commercial",
    "budget_key",
]

FLOAT_COLUMNS: List[str] = ["subscription_key"]

DATE_COLUMNS: List[str] = [
    "subscription_start_date",
    "expiry_date",
    "cancellation_date",
    "subscription_calender_date",
    "expiry_date_gp",
    "subscription_calender_date_gp",
    "expiry_date_gp_90",
    "subscription_calender_date_gp_90",
]

CATEGORICAL_COLUMNS: List[str] = [
    "customer_external_id",
    "product_name",
    "country",
    "offer_id",
    "offer_period",
    "offer_type",
    "payment_method",
    "subscription_status",
    "subscription_type",
    "subscription_type_gp",
    "subscription_status_gp",
    "subscription_status_gp_90",
    "subscription_type_gp_90",
    "winback_type",
    "subscription_churn_type",
    "churn_reason",
    "acquisition_channel",
    "source_system",
    "partner_name",
    "coupon_code",
    "tier",
    "dir_indir",
    "d2c_b2b",
]

OPTIONAL_COLUMNS: List[str] = [
    "non_commercial",
    "budget_key",
    "cancellation_date",
    "subscription_calender_date",
    "expiry_date_gp",
    "subscription_calender_date_gp",
    "expiry_date_gp_90",
    "subscription_calender_date_gp_90",
    "customer_external_id",
    "offer_id",
    "offer_type",
    "subscription_status_gp",
    "subscription_status_gp_90",
    "subscription_type_gp_90",
]

ALL_COLUMNS: List[str] = INTEGER_COLUMNS + FLOAT_COLUMNS + DATE_COLUMNS + CATEGORICAL_COLUMNS
REQUIRED_COLUMNS: List[str] = [c for c in ALL_COLUMNS if c not in OPTIONAL_COLUMNS]

# Fields whose absence is counted by the quality report
KEY_FIELDS: List[str] = ["customer_id", "product_name", "subscription_status", "country"]
