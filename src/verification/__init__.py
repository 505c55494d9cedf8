"""
FireChain - Verification
Incident status transitions.
"""

from src.verification.state_machine import (
    LEGAL_TRANSITIONS,
    REWARDED_STATUSES,
    VerificationStateMachine,
    allowed_transitions,
    is_legal_transition,
)

__all__ = [
    "VerificationStateMachine",
    "LEGAL_TRANSITIONS",
    "REWARDED_STATUSES",
    "allowed_transitions",
    "is_legal_transition",
]
