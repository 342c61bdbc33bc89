"""
churnscope.pipeline

Subscription churn analytics as a reusable Python package.

Main entrypoint:
    from churnscope import run_all, ProjectConfig
    run_all(ProjectConfig(data_path="exports/subscriptions.csv", out_dir="out", as_of=date(2025, 1, 31)))

This will:
    - load the subscription export & type every known column
    - compute data quality diagnostics
    - (optionally) drop incomplete rows and keep the latest version per subscription
    - derive behavioural / product / channel / geographic features
    - score every subscription for churn risk
    - build segment, cohort and risk-validation tables
    - write all outputs to <out_dir> as CSVs (+ key_findings.json)
"""

from __future__ import annotations

import argparse
import json
import logging
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from .errors import FieldError
from .features import DateLike, derive_features
from .normalize import (
    DISTRIBUTION_COLUMNS,
    log_quality,
    missing_summary,
    normalize_subscriptions,
    quality_report,
    value_distribution,
)
from .report import build_reports, key_findings, overall_metrics
from .risk import score_risk, top_risk

log = logging.getLogger(__name__)

LOG_FMT = "%(asctime)s [%(levelname)s] %(message)s"


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

@dataclass
class ProjectConfig:
    """
    Configuration for the pipeline.

    Attributes
    ----------
    data_path : Path
        Subscription export (CSV) to analyse.
    out_dir : Path
        Directory where all derived CSVs will be written.
    as_of : date, optional
        Processing date for tenure and expiry features. Defaults to today,
        resolved once per run.
    clean : bool
        Drop incomplete / future rows and keep the latest version of each
        subscription before deriving features.
    top_n : int
        Number of highest-risk subscriptions written to the outreach list.
    """
    data_path: Path = Path("data/subscriptions.csv")
    out_dir: Path = Path("out")
    as_of: Optional[date] = None
    clean: bool = True
    top_n: int = 100

    def __post_init__(self) -> None:
        self.data_path = Path(self.data_path)
        self.out_dir = Path(self.out_dir)

    @property
    def processing_date(self) -> pd.Timestamp:
        if self.as_of is None:
            return pd.Timestamp.today().normalize()
        return pd.Timestamp(self.as_of).normalize()

    @property
    def enriched_path(self) -> Path:
        return self.out_dir / "subscriptions_enriched.csv"

    @property
    def findings_path(self) -> Path:
        return self.out_dir / "key_findings.json"


# ---------------------------------------------------------------------------
# Loading & cleaning
# ---------------------------------------------------------------------------

def load_subscriptions(config: ProjectConfig) -> pd.DataFrame:
    """
    Read the raw export with every value as text; typing is left to the
    normalizer so bad values can be reported per field.
    """
    raw = pd.read_csv(
        config.data_path,
        dtype=str,
        keep_default_na=False,
        na_values=[],
    )
    log.info("Raw data loaded: %d rows, %d columns", raw.shape[0], raw.shape[1])
    return raw


def clean_subscriptions(subs: pd.DataFrame, as_of: DateLike) -> Tuple[pd.DataFrame, int]:
    """
    Ingestion filter applied before feature derivation:
    - drop rows without customer id, start date, product or status
    - drop subscriptions that start after the processing date
    - keep only the max version of each subscription id

    Returns the filtered copy and the number of rows removed.
    """
    as_of = pd.Timestamp(as_of).normalize()
    required = ["customer_id", "subscription_start_date", "product_name", "subscription_status"]

    keep = subs.dropna(subset=required)
    keep = keep[keep["subscription_start_date"] <= as_of]

    latest = keep.groupby("subscription_id", dropna=False)["subscription_version"].transform("max")
    is_latest = keep["subscription_version"].eq(latest).fillna(False).astype(bool)
    # subscriptions with no version at all are kept as they are
    is_latest |= latest.isna().to_numpy()
    keep = keep[is_latest].copy()

    removed = len(subs) - len(keep)
    log.info("Removed %d invalid records; clean dataset: %d records", removed, len(keep))
    return keep, removed


# ---------------------------------------------------------------------------
# Enrichment
# ---------------------------------------------------------------------------

def enrich_subscriptions(subs: pd.DataFrame, as_of: DateLike) -> pd.DataFrame:
    """Normalized subscriptions -> derived features + risk scores."""
    return score_risk(derive_features(subs, as_of))


def enrich_record(record: Mapping[str, object], as_of: DateLike) -> Dict[str, object]:
    """
    Run a single raw record through normalization, features and risk scoring.
    """
    raw = pd.DataFrame([dict(record)], dtype=object)
    normalized, _ = normalize_subscriptions(raw)
    return enrich_subscriptions(normalized, as_of).iloc[0].to_dict()


def field_errors_frame(errors: Sequence[FieldError]) -> pd.DataFrame:
    return pd.DataFrame(
        [{"row": e.row, "column": e.column, "value": e.value, "expected": e.expected} for e in errors],
        columns=["row", "column", "value", "expected"],
    )


# ---------------------------------------------------------------------------
# Main entrypoint
# ---------------------------------------------------------------------------

def run_all(config: ProjectConfig) -> pd.DataFrame:
    """
    Run the full pipeline with the given configuration and return the
    scored subscription table.
    """
    config.out_dir.mkdir(parents=True, exist_ok=True)
    as_of = config.processing_date
    log.info("Processing date: %s", as_of.date())

    # 1) Load & type
    raw = load_subscriptions(config)
    subs, field_errors = normalize_subscriptions(raw)
    field_errors_frame(field_errors).to_csv(config.out_dir / "field_errors.csv", index=False)

    # 2) Quality diagnostics (reported, never enforced here)
    quality = quality_report(subs)
    log_quality(quality)
    quality.to_csv(config.out_dir / "quality_report.csv", index=False)
    missing_summary(subs).to_csv(config.out_dir / "missing_summary.csv", index=False)
    for column in DISTRIBUTION_COLUMNS:
        value_distribution(subs, column).to_csv(config.out_dir / f"{column}_distribution.csv", index=False)

    # 3) Caller-side cleaning policy
    if config.clean:
        subs, _ = clean_subscriptions(subs, as_of)

    # 4) Features + risk
    scored = enrich_subscriptions(subs, as_of)
    scored.to_csv(config.enriched_path, index=False)
    top_risk(scored, config.top_n).to_csv(config.out_dir / "top_risk_subscriptions.csv", index=False)

    # 5) Segment tables & findings
    metrics = overall_metrics(scored)
    pd.DataFrame(list(metrics.items()), columns=["metric", "value"]).to_csv(
        config.out_dir / "overall_metrics.csv", index=False
    )
    reports = build_reports(scored)
    for name, table in reports.items():
        table.to_csv(config.out_dir / f"{name}.csv", index=False)

    findings = key_findings(scored, reports)
    config.findings_path.write_text(json.dumps(findings, indent=2, default=str, allow_nan=False), encoding="utf-8")

    print(f"Pipeline completed. Outputs written to: {config.out_dir}")
    return scored


def main(argv: Optional[List[str]] = None) -> None:
    ap = argparse.ArgumentParser(description="Subscription churn analytics")
    ap.add_argument("--data", required=True, help="subscription export (CSV)")
    ap.add_argument("--out", default="out")
    ap.add_argument("--as-of", type=date.fromisoformat, default=None, help="processing date, YYYY-MM-DD")
    ap.add_argument("--no-clean", action="store_true", help="keep every row of the export")
    ap.add_argument("--top-n", type=int, default=100)
    args = ap.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format=LOG_FMT)
    cfg = ProjectConfig(
        data_path=Path(args.data),
        out_dir=Path(args.out),
        as_of=args.as_of,
        clean=not args.no_clean,
        top_n=args.top_n,
    )
    run_all(cfg)


if __name__ == "__main__":
    main()
