"""
Governance Error Taxonomy

Every error aborts the whole operation; callers get a specific kind plus a
human-readable reason.
"""

from typing import Dict


class GovernanceError(Exception):
    """Base exception for governance operations"""

    kind = "GovernanceError"

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason

    def to_dict(self) -> Dict[str, str]:
        return {"kind": self.kind, "reason": self.reason}


class ValidationError(GovernanceError, ValueError):
    """Malformed input: empty text, bad address or field element, batch mismatch"""
    kind = "ValidationError"


class AuthorizationError(GovernanceError, PermissionError):
    """Caller lacks the role or standing required for the operation"""
    kind = "AuthorizationError"


class StateError(GovernanceError):
    """Operation invalid for the current proposal or contract state"""
    kind = "StateError"


class DuplicateError(GovernanceError):
    """Already registered, or already voted"""
    kind = "DuplicateError"


class ProofError(GovernanceError):
    """Zero-knowledge proof failed verification"""
    kind = "ProofError"


class ConsistencyError(GovernanceError):
    """Supplied root or public signals disagree with recorded state"""
    kind = "ConsistencyError"


class ParameterError(GovernanceError):
    """Weight basis points do not sum to 10,000"""
    kind = "ParameterError"
