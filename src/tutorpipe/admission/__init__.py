"""
Admission control exports.
"""

from .gate import AdmissionGate
from .limiter import (
    AdmissionDecision,
    AdmissionLimiter,
    AdmissionStatus,
    FailureOutcome,
    RateLimitRecord,
)
from .policy import API_POLICY, AUTH_POLICY, DEFAULT_POLICY, SOURCE_POLICY, AdmissionPolicy

__all__ = [
    "AdmissionLimiter",
    "AdmissionDecision",
    "AdmissionStatus",
    "FailureOutcome",
    "RateLimitRecord",
    "AdmissionPolicy",
    "DEFAULT_POLICY",
    "AUTH_POLICY",
    "SOURCE_POLICY",
    "API_POLICY",
    "AdmissionGate",
]
