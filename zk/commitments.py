"""
Commitment / Nullifier Scheme

commitment = H(secret)
nullifier  = H(secret, proposalId)

Knowing the secret is required to produce a matching commitment/nullifier
pair. Observing both values does not reveal the secret, and nullifiers of the
same secret for two different proposals cannot be linked to each other.
"""

import secrets
from dataclasses import dataclass

from .poseidon import FIELD_PRIME, FieldLike, parse_field_element, poseidon_hash


def validate_secret(secret: FieldLike) -> int:
    """Reject secrets that cannot be hashed safely"""
    value = parse_field_element(secret)
    if value == 0:
        raise ValueError("Secret must be non-zero")
    return value


def generate_secret() -> int:
    """Uniformly random non-zero field element"""
    return secrets.randbelow(FIELD_PRIME - 1) + 1


def compute_commitment(secret: FieldLike) -> int:
    return poseidon_hash(validate_secret(secret))


def compute_nullifier(secret: FieldLike, proposal_id: FieldLike) -> int:
    """Per-proposal nullifier of a secret"""
    return poseidon_hash(validate_secret(secret), parse_field_element(proposal_id))


@dataclass(frozen=True)
class VoterCredential:
    """Private voter material kept by the registrant, never by the core"""
    secret: int
    commitment: int

    @classmethod
    def from_secret(cls, secret: FieldLike) -> 'VoterCredential':
        value = validate_secret(secret)
        return cls(secret=value, commitment=compute_commitment(value))

    @classmethod
    def generate(cls) -> 'VoterCredential':
        return cls.from_secret(generate_secret())

    def nullifier_for(self, proposal_id: FieldLike) -> int:
        return compute_nullifier(self.secret, proposal_id)

    def __repr__(self) -> str:
        return f"VoterCredential(commitment={self.commitment})"
