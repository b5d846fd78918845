"""
Vote Proof Verification

A vote proof is valid only if there exist a secret s and a leaf index i such
that H(s) is leaf i of the tree with the given root, nullifier == H(s, proposalId)
and voteChoice is 0 or 1. Backends here check cryptographic validity only;
root snapshots and nullifier spending are enforced by the voting component.
"""

import json
import logging
import os
import shutil
import stat
import subprocess
import tempfile
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from cryptography.hazmat.primitives import constant_time

from .commitments import compute_commitment, compute_nullifier
from .merkle import compute_root_from_path
from .poseidon import FieldLike, parse_field_element, to_field_hex

logger = logging.getLogger(__name__)

VALID_VOTE_CHOICES = (0, 1)

# ============================================================================
# EXCEPTIONS
# ============================================================================


class ZKError(Exception):
    """Base exception for ZK operations"""
    pass


class ProofSystemError(ZKError):
    """The proving/verification backend could not run"""
    pass


class ProofGenerationError(ZKError):
    """Proof generation failed"""
    pass


# ============================================================================
# PUBLIC SIGNALS
# ============================================================================


@dataclass(frozen=True)
class PublicSignals:
    """Public inputs of the vote circuit"""
    nullifier: int
    root: int
    proposal_id: int
    vote_choice: int

    # Order in which the circuit exposes its public signals
    WIRE_ORDER = ("nullifier", "root", "proposal_id", "vote_choice")
    # Circuit input names, as used by to_dict
    CIRCUIT_NAMES = {"proposal_id": "proposalId", "vote_choice": "voteChoice"}

    def __post_init__(self):
        for name in self.WIRE_ORDER:
            parse_field_element(getattr(self, name))
        if self.vote_choice not in VALID_VOTE_CHOICES:
            raise ValueError(
                f"Vote choice must be 0 or 1, got {self.vote_choice}")

    @classmethod
    def from_list(cls, signals: Sequence[FieldLike]) -> 'PublicSignals':
        if len(signals) != len(cls.WIRE_ORDER):
            raise ValueError(
                f"Expected {len(cls.WIRE_ORDER)} public signals, got {len(signals)}")
        values = [parse_field_element(s) for s in signals]
        return cls(**dict(zip(cls.WIRE_ORDER, values)))

    @classmethod
    def from_dict(cls, signals: Dict[str, FieldLike]) -> 'PublicSignals':
        """Accepts both snake_case and circuit (camelCase) input names"""
        values = {}
        for name in cls.WIRE_ORDER:
            key = name if name in signals else cls.CIRCUIT_NAMES.get(name, name)
            if key not in signals:
                raise ValueError(f"Missing public signal: {name}")
            values[name] = parse_field_element(signals[key])
        return cls(**values)

    @classmethod
    def coerce(cls, signals: Any) -> 'PublicSignals':
        if isinstance(signals, PublicSignals):
            return signals
        if isinstance(signals, dict):
            return cls.from_dict(signals)
        if isinstance(signals, (list, tuple)):
            return cls.from_list(signals)
        raise ValueError(
            f"Unsupported public signals type: {type(signals).__name__}")

    def to_list(self) -> List[str]:
        return [str(getattr(self, name)) for name in self.WIRE_ORDER]

    def to_dict(self) -> Dict[str, str]:
        return {
            "nullifier": to_field_hex(self.nullifier),
            "root": to_field_hex(self.root),
            "proposalId": str(self.proposal_id),
            "voteChoice": str(self.vote_choice),
        }


def field_equals(a: int, b: int) -> bool:
    """Constant-time comparison of two field elements"""
    return constant_time.bytes_eq(a.to_bytes(32, "big"), b.to_bytes(32, "big"))


# ============================================================================
# VERIFIER BACKENDS
# ============================================================================


class ProofVerifier(ABC):
    """Cryptographic validity check of a vote proof against its public inputs"""

    name = "abstract"

    @abstractmethod
    def verify(self, proof: Any, public_signals: PublicSignals) -> bool:
        raise NotImplementedError


class WitnessProofVerifier(ProofVerifier):
    """
    Development backend. The proof object carries the witness in the clear
    (secret, pathElements, pathIndices) and the verifier checks the circuit
    statement directly. NOT zero-knowledge: use only for tests and demos.
    """

    name = "witness"
    PROTOCOL = "witness"

    def __init__(self, tree_depth: Optional[int] = None):
        self.tree_depth = tree_depth

    def verify(self, proof: Any, public_signals: PublicSignals) -> bool:
        if not isinstance(proof, dict) or proof.get("protocol") != self.PROTOCOL:
            logger.warning("Witness verifier received a foreign proof object")
            return False

        try:
            secret = parse_field_element(proof["secret"])
            path_elements = [parse_field_element(e) for e in proof["pathElements"]]
            path_indices = [int(i) for i in proof["pathIndices"]]
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Malformed witness proof: {e}")
            return False

        if self.tree_depth is not None and len(path_elements) != self.tree_depth:
            logger.warning(
                f"Witness path length {len(path_elements)} != tree depth {self.tree_depth}")
            return False

        if public_signals.vote_choice not in VALID_VOTE_CHOICES:
            return False

        try:
            commitment = compute_commitment(secret)
            root = compute_root_from_path(commitment, path_elements, path_indices)
            nullifier = compute_nullifier(secret, public_signals.proposal_id)
        except ValueError as e:
            logger.warning(f"Witness evaluation failed: {e}")
            return False

        return field_equals(root, public_signals.root) and \
            field_equals(nullifier, public_signals.nullifier)


class SnarkjsGroth16Verifier(ProofVerifier):
    """Groth16 verification through the snarkjs CLI"""

    name = "snarkjs"

    def __init__(self, verification_key: Path, snarkjs_binary: str = "snarkjs", timeout: int = 60):
        self.verification_key = Path(verification_key)
        self.snarkjs_binary = snarkjs_binary
        self.timeout = timeout
        self._vkey_cache: Optional[Dict[str, Any]] = None

    def _get_verification_key(self) -> Dict[str, Any]:
        if self._vkey_cache is None:
            if not self.verification_key.exists():
                raise ProofSystemError(
                    f"Verification key not found: {self.verification_key}")
            try:
                self._vkey_cache = json.loads(self.verification_key.read_text())
            except (OSError, ValueError) as e:
                raise ProofSystemError(
                    f"Unreadable verification key {self.verification_key}: {e}") from e
        return self._vkey_cache

    def _resolve_binary(self) -> str:
        binary = shutil.which(self.snarkjs_binary)
        if binary is None:
            raise ProofSystemError(
                f"snarkjs binary not found: {self.snarkjs_binary}")
        return binary

    def verify(self, proof: Any, public_signals: PublicSignals) -> bool:
        if not isinstance(proof, dict) or proof.get("protocol", "groth16") != "groth16":
            logger.warning("Groth16 verifier received a non-Groth16 proof")
            return False

        start_time = time.time()
        vkey = self._get_verification_key()
        binary = self._resolve_binary()

        try:
            with tempfile.TemporaryDirectory() as temp_dir:
                temp_path = Path(temp_dir)
                vkey_file = self._secure_temp_file(temp_path / "vkey.json", vkey)
                public_file = self._secure_temp_file(
                    temp_path / "public.json", public_signals.to_list())
                proof_file = self._secure_temp_file(temp_path / "proof.json", proof)

                cmd = [binary, 'groth16', 'verify',
                       str(vkey_file), str(public_file), str(proof_file)]
                result = subprocess.run(
                    cmd, capture_output=True, text=True, timeout=self.timeout)
        except subprocess.TimeoutExpired:
            raise ProofSystemError(
                f"snarkjs verification timed out after {self.timeout}s") from None
        except (OSError, TypeError, ValueError) as e:
            raise ProofSystemError(f"snarkjs verification could not run: {e}") from e

        verification_time = time.time() - start_time
        is_valid = result.returncode == 0 and "OK!" in result.stdout
        if result.returncode != 0 and "Invalid proof" not in result.stdout:
            logger.error(f"snarkjs verify failed: {result.stderr.strip()}")
        logger.info(
            f"Verified Groth16 vote proof in {verification_time:.3f}s: {'valid' if is_valid else 'invalid'}")
        return is_valid

    @staticmethod
    def _secure_temp_file(path: Path, payload: Any) -> Path:
        """Write JSON with owner-only permissions"""
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL,
                     stat.S_IRUSR | stat.S_IWUSR)
        with os.fdopen(fd, 'w') as f:
            json.dump(payload, f)
        return path


def create_verifier(backend: str, tree_depth: Optional[int] = None,
                    verification_key: Optional[Path] = None,
                    snarkjs_binary: str = "snarkjs", timeout: int = 60) -> ProofVerifier:
    """Instantiate a verifier backend by name"""
    if backend == WitnessProofVerifier.name:
        return WitnessProofVerifier(tree_depth=tree_depth)
    if backend == SnarkjsGroth16Verifier.name:
        if verification_key is None:
            raise ValueError("snarkjs backend requires a verification key path")
        return SnarkjsGroth16Verifier(verification_key, snarkjs_binary, timeout)
    raise ValueError(f"Unknown verifier backend: {backend}")
