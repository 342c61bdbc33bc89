import numpy as np
import pandas as pd
import pytest

from churnscope.features import FEATURE_COLUMNS, derive_features, tenure_category
from churnscope.normalize import normalize_subscriptions

from .conftest import AS_OF, serial


def derive(make_raw, *overrides, as_of=AS_OF):
    normalized, _ = normalize_subscriptions(make_raw(*overrides))
    return derive_features(normalized, as_of)


def test_all_feature_columns_present(make_raw):
    out = derive(make_raw)
    assert [c for c in FEATURE_COLUMNS if c not in out.columns] == []


def test_churn_flag_is_exact_match(make_raw):
    out = derive(
        make_raw,
        {"Subscription_status": "churned"},
        {"Subscription_status": "Churned"},
        {"Subscription_status": "active"},
        {"Subscription_status": ""},
    )
    assert out["churned"].tolist() == [True, False, False, False]
    assert out["churn_label"].tolist() == ["Churned", "Active", "Active", "Active"]


def test_temporal_features_use_injected_date(make_raw):
    row = {
        "Subscription_start_date": serial("2024-12-01"),
        "Expiry_date": serial("2025-02-05"),
    }
    out = derive(make_raw, row).iloc[0]

    assert out["subscription_days"] == 66
    assert out["subscription_months"] == pytest.approx(66 / 30.44)
    assert out["tenure_days"] == 61
    assert out["tenure_months"] == pytest.approx(61 / 30.44)
    assert out["days_until_expiry"] == 5
    assert bool(out["expiring_soon"]) is True
    assert bool(out["short_tenure"]) is True
    assert out["cohort_month"] == pd.Timestamp("2024-12-01")
    assert out["start_month"] == "Dec"
    assert out["start_quarter"] == 4
    assert out["start_year"] == 2024

    later = derive(make_raw, row, as_of="2025-03-01").iloc[0]
    assert later["tenure_days"] == 90
    assert later["days_until_expiry"] == -24
    assert bool(later["expiring_soon"]) is False


def test_tenure_category_boundaries():
    months = pd.Series([0.5, 1.0, 1.01, 3.0, 6.0, 12.0, 12.5, np.nan])
    assert tenure_category(months).tolist() == [
        "New (0-1 month)",
        "New (0-1 month)",
        "Early (1-3 months)",
        "Early (1-3 months)",
        "Growing (3-6 months)",
        "Established (6-12 months)",
        "Loyal (12+ months)",
        "Unknown",
    ]


@pytest.mark.parametrize(
    "days, expected",
    [(0, False), (1, True), (7, True), (8, False), (-3, False)],
)
def test_expiring_soon_window(make_raw, days, expected):
    expiry = pd.Timestamp(AS_OF) + pd.Timedelta(days=days)
    out = derive(make_raw, {"Expiry_date": serial(expiry)})
    assert bool(out.loc[0, "expiring_soon"]) is expected


def test_missing_start_date_stays_total(make_raw):
    out = derive(make_raw, {"Subscription_start_date": ""}).iloc[0]

    assert np.isnan(out["tenure_months"])
    assert out["tenure_category"] == "Unknown"
    assert bool(out["short_tenure"]) is False
    assert pd.isna(out["cohort_month"])


def test_product_lookups(make_raw):
    products = ["TOD 4K", "TOD Total", "TOD Shows", "AFCON", "tod 4k", ""]
    out = derive(make_raw, *[{"Product_name": p} for p in products])

    assert out["product_tier"].tolist() == ["Premium", "Standard", "Basic", "Event Pass", "Other", "Other"]
    assert out["is_premium"].tolist() == [True, True, False, False, False, False]
    assert out["is_event_pass"].tolist() == [False, False, False, True, False, False]


def test_offer_period_standardization(make_raw):
    periods = ["daily", "weekly", "monthly", "6-months", "custom", "Monthly", ""]
    out = derive(make_raw, *[{"Offer_period": p} for p in periods])
    assert out["offer_period_std"].tolist() == [
        "Daily", "Weekly", "Monthly", "Long-term", "Custom", "Other", "Other",
    ]


def test_winback_and_continuing_read_different_fields(make_raw):
    out = derive(
        make_raw,
        {"Subscription_type": "winback", "Subscription_type_gp": ""},
        {"Subscription_type": "continue", "Subscription_type_gp": ""},
        {"Subscription_type": "new", "Subscription_type_gp": "continue"},
        {"Subscription_type": "", "Subscription_type_gp": "winback"},
    )
    assert out["is_winback"].tolist() == [True, False, False, False]
    assert out["is_continuing"].tolist() == [False, False, True, False]
    assert out["is_new_subscriber"].tolist() == [False, False, True, False]


def test_partner_and_winback_category_defaults(make_raw):
    out = derive(
        make_raw,
        {"Partner_name": "", "Winback_type": ""},
        {"Partner_name": "Samsung", "Winback_type": "reactivated"},
    )
    assert out["has_partner"].tolist() == [False, True]
    assert out["winback_category"].tolist() == ["Not Winback", "reactivated"]


def test_acquisition_channel_rule_order(make_raw):
    out = derive(
        make_raw,
        {"Acquisition_channel": "Web", "Source_system": "Partner"},
        {"Acquisition_channel": "Apple", "Source_system": "Partner"},
        {"Acquisition_channel": "Android", "Source_system": "Partner"},
        {"Acquisition_channel": "", "Source_system": ""},
    )
    assert out["acquisition_channel_group"].tolist() == ["Web", "Mobile App", "Partner", "Other"]


def test_payment_category(make_raw):
    methods = ["Card", "voucher", "iOS", "web", "Voucher", ""]
    out = derive(make_raw, *[{"Payment_method": m} for m in methods])
    assert out["payment_category"].tolist() == [
        "Card", "Voucher", "Digital Wallet", "Digital Wallet", "Other", "Other",
    ]


def test_channel_and_promo_flags(make_raw):
    out = derive(
        make_raw,
        {"Dir_indir": "Direct", "D2C_B2B": "B2B", "promo": "1", "Coupon_code": "RAMADAN", "Campaign_ID": "77"},
        {"Dir_indir": "Indirect", "D2C_B2B": "D2C", "promo": "", "Coupon_code": "", "Campaign_ID": "x"},
    )
    assert out["is_direct"].tolist() == [True, False]
    assert out["is_b2b"].tolist() == [True, False]
    assert out["has_promo"].tolist() == [True, False]
    assert out["has_coupon"].tolist() == [True, False]
    assert out["has_campaign"].tolist() == [True, False]


def test_churn_type_and_reason_are_absence_first(make_raw):
    out = derive(
        make_raw,
        {"Subscription_churn_type": "", "churn_reason": ""},
        {"Subscription_churn_type": "voluntary churn", "churn_reason": "Payment failed"},
        {"Subscription_churn_type": "Involuntary churn", "churn_reason": "Customer churn"},
        {"Subscription_churn_type": "Voluntary churn", "churn_reason": "Broadcaster churn"},
        {"Subscription_churn_type": "other", "churn_reason": "moved abroad"},
    )
    assert out["churn_type"].tolist() == ["Active", "Voluntary", "Involuntary", "Unknown", "Unknown"]
    assert out["churn_reason_category"].tolist() == [
        "Active", "Payment Issue", "Customer Decision", "Content Issue", "Other",
    ]


def test_geography(make_raw):
    countries = ["Egypt", "United Arab Emirates", "Morocco", "Iraq", "Jordan", "Saudi Arabia"]
    out = derive(make_raw, *[{"Country": c} for c in countries])
    assert out["country_tier"].tolist() == ["Tier 1", "Tier 1", "Tier 2", "Tier 2", "Tier 3", "Tier 3"]
    assert out["region"].tolist() == [
        "North Africa", "Middle East", "North Africa", "Middle East", "Middle East", "Other",
    ]


def test_grace_version_and_value_flags(make_raw):
    out = derive(
        make_raw,
        {"In_gp": "1", "In_gp_90": "1", "Subscription_version": "3", "Subscription_latest": "0",
         "daily_weekly_flag": "1", "Tier": "T2"},
        {"In_gp": "", "In_gp_90": "0", "Subscription_version": "", "Tier": "T9"},
    )
    assert out["in_grace_period"].tolist() == [True, False]
    assert out["in_grace_period_90"].tolist() == [True, False]
    assert out["has_multiple_versions"].tolist() == [True, False]
    assert out["is_latest_version"].tolist() == [False, True]
    assert out["is_daily_weekly"].tolist() == [True, False]
    assert out["value_tier"].tolist() == ["Medium Value", "Unknown"]


def test_stability_score(make_raw):
    out = derive(
        make_raw,
        {"Subscription_type": "new", "Subscription_version": "2"},
        {"Subscription_type": "winback", "Subscription_type_gp": "continue"},
        {"Subscription_type": "renewal", "Subscription_type_gp": "continue"},
    )
    assert out["stability_score"].tolist() == [3, 1, -2]


def test_derivation_is_deterministic_and_order_independent(make_raw):
    overrides = [
        {"Product_name": "AFCON", "Subscription_status": "churned"},
        {"Subscription_type": "winback", "Payment_method": "voucher"},
        {"Subscription_start_date": "", "Country": "Jordan"},
        {"In_gp": "1", "Acquisition_channel": "Apple"},
    ]
    normalized, _ = normalize_subscriptions(make_raw(*overrides))

    first = derive_features(normalized, AS_OF)
    second = derive_features(normalized, AS_OF)
    pd.testing.assert_frame_equal(first, second)

    shuffled = derive_features(normalized.iloc[::-1], AS_OF).sort_index()
    pd.testing.assert_frame_equal(first, shuffled)

    alone = derive_features(normalized.iloc[[2]], AS_OF)
    pd.testing.assert_frame_equal(first.iloc[[2]], alone)


def test_derive_does_not_modify_input(make_raw):
    normalized, _ = normalize_subscriptions(make_raw())
    before = normalized.copy()
    derive_features(normalized, AS_OF)
    pd.testing.assert_frame_equal(normalized, before)
