"""Public API for the leader / bending-detail consistency engine."""

from rebar_leader_check.checker import ConsistencyChecker
from rebar_leader_check.classification import classify, classify_all
from rebar_leader_check.contracts import (
    CheckConfig,
    CheckManyResult,
    ConsistencyCheckItem,
    FailureKind,
    FailureStage,
    Severity,
)
from rebar_leader_check.host_resolver import HostResolver
from rebar_leader_check.review import ReviewRunResult, ReviewService

__all__ = [
    "CheckConfig",
    "CheckManyResult",
    "ConsistencyCheckItem",
    "ConsistencyChecker",
    "FailureKind",
    "FailureStage",
    "HostResolver",
    "ReviewRunResult",
    "ReviewService",
    "Severity",
    "classify",
    "classify_all",
]
