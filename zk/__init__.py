"""
Zero-Knowledge Membership Module for Private Governance Voting
Poseidon hashing, commitments/nullifiers, Merkle trees and vote proofs
"""

from .poseidon import (
    FIELD_PRIME,
    Poseidon,
    poseidon_hash,
    parse_field_element,
    is_field_element,
    to_field_hex,
)
from .commitments import (
    VoterCredential,
    compute_commitment,
    compute_nullifier,
    generate_secret,
)
from .merkle import (
    DEFAULT_TREE_DEPTH,
    ZERO_LEAF,
    MerkleProof,
    MerkleTree,
    TreeEpoch,
    compute_root,
    compute_root_from_path,
)
from .verifier import (
    ProofVerifier,
    PublicSignals,
    SnarkjsGroth16Verifier,
    WitnessProofVerifier,
    create_verifier,

    # Exceptions
    ZKError,
    ProofSystemError,
    ProofGenerationError,
)
from .prover import (
    SnarkjsProver,
    VoteProofBundle,
    WitnessProver,
    build_vote_witness,
    create_prover,
)

__version__ = "1.0.0"

__all__ = [
    'FIELD_PRIME',
    'Poseidon',
    'poseidon_hash',
    'parse_field_element',
    'is_field_element',
    'to_field_hex',

    'VoterCredential',
    'compute_commitment',
    'compute_nullifier',
    'generate_secret',

    'DEFAULT_TREE_DEPTH',
    'ZERO_LEAF',
    'MerkleProof',
    'MerkleTree',
    'TreeEpoch',
    'compute_root',
    'compute_root_from_path',

    'ProofVerifier',
    'PublicSignals',
    'SnarkjsGroth16Verifier',
    'WitnessProofVerifier',
    'create_verifier',
    'SnarkjsProver',
    'VoteProofBundle',
    'WitnessProver',
    'build_vote_witness',
    'create_prover',

    # Exceptions
    'ZKError',
    'ProofSystemError',
    'ProofGenerationError',
]
