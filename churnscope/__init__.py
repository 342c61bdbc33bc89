"""
Top-level package for the subscription churn analytics project.
"""

__all__ = [
    "ProjectConfig",
    "run_all",
    "normalize_subscriptions",
    "derive_features",
    "score_risk",
    "aggregate_churn",
    "SchemaError",
    "FieldError",
    "EmptyGroupError",
]

from .aggregate import aggregate_churn
from .errors import EmptyGroupError, FieldError, SchemaError
from .features import derive_features
from .normalize import normalize_subscriptions
from .pipeline import ProjectConfig, run_all  # convenience re-export
from .risk import score_risk
