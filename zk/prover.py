"""
Vote Proof Generation

Builds the circuit input for a private vote and turns it into a proof bundle.
Runs entirely on the voter's side: the secret never reaches the governance core.
"""

import asyncio
import json
import logging
import shutil
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from .commitments import VoterCredential
from .merkle import MerkleTree
from .verifier import (
    ProofGenerationError,
    ProofSystemError,
    PublicSignals,
    WitnessProofVerifier,
)

logger = logging.getLogger(__name__)


@dataclass
class VoteProofBundle:
    """Proof plus the public signals it was generated for"""
    proof: Dict[str, Any]
    public_signals: PublicSignals
    generation_time: float = 0.0

    @property
    def nullifier(self) -> int:
        return self.public_signals.nullifier

    @property
    def root(self) -> int:
        return self.public_signals.root

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proof": self.proof,
            "publicSignals": self.public_signals.to_list(),
            "generationTime": self.generation_time,
        }


def build_vote_witness(credential: VoterCredential, tree: MerkleTree,
                       proposal_id: int, vote_choice: int) -> Dict[str, Any]:
    """Circuit input for a vote by the holder of credential"""
    if vote_choice not in (0, 1):
        raise ValueError(f"Vote choice must be 0 or 1, got {vote_choice}")

    index = tree.index_of(credential.commitment)
    merkle_proof = tree.get_proof(index)

    return {
        "secret": str(credential.secret),
        "pathElements": [str(e) for e in merkle_proof.path_elements],
        "pathIndices": list(merkle_proof.path_indices),
        "nullifier": str(credential.nullifier_for(proposal_id)),
        "root": str(merkle_proof.root),
        "proposalId": str(proposal_id),
        "voteChoice": str(vote_choice),
    }


def _signals_from_witness(witness: Dict[str, Any]) -> PublicSignals:
    return PublicSignals.from_list([
        witness["nullifier"], witness["root"],
        witness["proposalId"], witness["voteChoice"],
    ])


class WitnessProver:
    """Produces proofs checkable by WitnessProofVerifier (development only)"""

    def prove(self, credential: VoterCredential, tree: MerkleTree,
              proposal_id: int, vote_choice: int) -> VoteProofBundle:
        start_time = time.time()
        witness = build_vote_witness(credential, tree, proposal_id, vote_choice)
        proof = {
            "protocol": WitnessProofVerifier.PROTOCOL,
            "secret": witness["secret"],
            "pathElements": witness["pathElements"],
            "pathIndices": witness["pathIndices"],
        }
        return VoteProofBundle(
            proof=proof,
            public_signals=_signals_from_witness(witness),
            generation_time=time.time() - start_time,
        )


class SnarkjsProver:
    """Groth16 proving through `snarkjs groth16 fullprove`"""

    def __init__(self, wasm_file: Path, zkey_file: Path,
                 snarkjs_binary: str = "snarkjs", timeout: int = 300):
        self.wasm_file = Path(wasm_file)
        self.zkey_file = Path(zkey_file)
        self.snarkjs_binary = snarkjs_binary
        self.timeout = timeout

    def _check_artifacts(self) -> str:
        for artifact in (self.wasm_file, self.zkey_file):
            if not artifact.exists():
                raise ProofSystemError(f"Circuit artifact not found: {artifact}")
        binary = shutil.which(self.snarkjs_binary)
        if binary is None:
            raise ProofSystemError(
                f"snarkjs binary not found: {self.snarkjs_binary}")
        return binary

    async def prove(self, credential: VoterCredential, tree: MerkleTree,
                    proposal_id: int, vote_choice: int) -> VoteProofBundle:
        start_time = time.time()
        binary = self._check_artifacts()
        witness = build_vote_witness(credential, tree, proposal_id, vote_choice)

        with tempfile.TemporaryDirectory() as temp_dir:
            temp_path = Path(temp_dir)
            input_file = temp_path / "input.json"
            proof_file = temp_path / "proof.json"
            public_file = temp_path / "public.json"
            input_file.write_text(json.dumps(witness))

            process = await asyncio.create_subprocess_exec(
                binary, 'groth16', 'fullprove',
                str(input_file), str(self.wasm_file), str(self.zkey_file),
                str(proof_file), str(public_file),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            try:
                _, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
            except asyncio.TimeoutError:
                process.kill()
                await process.wait()
                raise ProofSystemError(
                    f"snarkjs proving timed out after {self.timeout}s") from None

            if process.returncode != 0:
                raise ProofGenerationError(
                    f"Proof generation failed: {stderr.decode(errors='replace').strip()}")

            proof = json.loads(proof_file.read_text())
            public_signals = PublicSignals.from_list(json.loads(public_file.read_text()))

        if public_signals != _signals_from_witness(witness):
            raise ProofGenerationError("Circuit produced unexpected public signals")

        generation_time = time.time() - start_time
        logger.info(f"Generated vote proof in {generation_time:.2f}s")
        return VoteProofBundle(proof=proof, public_signals=public_signals,
                               generation_time=generation_time)


def create_prover(backend: str, wasm_file: Optional[Path] = None,
                  zkey_file: Optional[Path] = None,
                  snarkjs_binary: str = "snarkjs", timeout: int = 300):
    if backend == WitnessProofVerifier.name:
        return WitnessProver()
    if backend == "snarkjs":
        if wasm_file is None or zkey_file is None:
            raise ValueError("snarkjs backend requires wasm and zkey paths")
        return SnarkjsProver(wasm_file, zkey_file, snarkjs_binary, timeout)
    raise ValueError(f"Unknown prover backend: {backend}")
