"""
Poseidon Domain Hash over the BN254 Scalar Field
Arithmetic-circuit-friendly hash used for commitments, nullifiers and Merkle nodes
"""

import logging
from typing import List, Sequence, Union

from cryptography.hazmat.primitives import hashes

logger = logging.getLogger(__name__)

# BN254 scalar field prime
FIELD_PRIME = 21888242871839275222246405745257275088548364400416034343698204186575808495617

FieldLike = Union[int, str]

# ============================================================================
# FIELD ELEMENT HELPERS
# ============================================================================


def parse_field_element(value: FieldLike) -> int:
    """Parse an int, decimal string or 0x-hex string into a field element"""
    if isinstance(value, bool):
        raise ValueError("Boolean is not a field element")

    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValueError("Empty field element")
        try:
            if text.lower().startswith("0x"):
                parsed = int(text, 16)
            else:
                parsed = int(text, 10)
        except ValueError:
            raise ValueError(f"Malformed field element: {value!r}") from None
    else:
        raise ValueError(
            f"Unsupported field element type: {type(value).__name__}")

    if parsed < 0 or parsed >= FIELD_PRIME:
        raise ValueError(f"Value {parsed} outside field bounds")

    return parsed


def is_field_element(value: FieldLike) -> bool:
    try:
        parse_field_element(value)
    except ValueError:
        return False
    return True


def to_field_hex(value: FieldLike) -> str:
    """Render a field element as 32-byte 0x-prefixed hex"""
    return "0x" + format(parse_field_element(value), "064x")


# ============================================================================
# POSEIDON PERMUTATION (t=3, x^5 S-box)
# ============================================================================

CONSTANTS_SEED = b"poseidon-bn254-t3"


def derive_round_constants(count: int, seed: bytes = CONSTANTS_SEED) -> List[int]:
    """Derive round constants as BLAKE2b(seed || index) mod p"""
    constants = []
    for index in range(count):
        digest = hashes.Hash(hashes.BLAKE2b(64))
        digest.update(seed)
        digest.update(index.to_bytes(4, "big"))
        constants.append(int.from_bytes(digest.finalize(), "big") % FIELD_PRIME)
    return constants


def cauchy_mds_matrix(width: int) -> List[List[int]]:
    """Cauchy matrix 1/(x_i + y_j) with x_i = i and y_j = width + j"""
    return [
        [pow(i + width + j, FIELD_PRIME - 2, FIELD_PRIME) for j in range(width)]
        for i in range(width)
    ]


class Poseidon:
    """Poseidon permutation with width 3 and squeezing from state[1]"""

    PRIME = FIELD_PRIME

    # Number of full rounds and partial rounds (128-bit security for t=3)
    FULL_ROUNDS = 8
    PARTIAL_ROUNDS = 57
    WIDTH = 3

    # Capacity tags separate the one- and two-input variants
    CAPACITY_TWO_INPUTS = 0
    CAPACITY_ONE_INPUT = 1

    ROUND_CONSTANTS = derive_round_constants(
        (FULL_ROUNDS + PARTIAL_ROUNDS) * WIDTH)
    MDS_MATRIX = cauchy_mds_matrix(WIDTH)

    @staticmethod
    def ark(state: List[int], constant_idx: int) -> List[int]:
        """Add round constants"""
        return [(state[i] + Poseidon.ROUND_CONSTANTS[constant_idx + i]) % Poseidon.PRIME
                for i in range(Poseidon.WIDTH)]

    @staticmethod
    def sbox(state: List[int], full_round: bool) -> List[int]:
        """Apply S-box (x^5 mod p)"""
        if full_round:
            return [pow(x, 5, Poseidon.PRIME) for x in state]
        return [pow(state[0], 5, Poseidon.PRIME)] + state[1:]

    @staticmethod
    def mix(state: List[int]) -> List[int]:
        """Apply MDS matrix multiplication"""
        return [
            sum(Poseidon.MDS_MATRIX[i][j] * state[j]
                for j in range(Poseidon.WIDTH)) % Poseidon.PRIME
            for i in range(Poseidon.WIDTH)
        ]

    @staticmethod
    def permute(state: List[int]) -> List[int]:
        constant_idx = 0
        half_full = Poseidon.FULL_ROUNDS // 2

        for round_no in range(Poseidon.FULL_ROUNDS + Poseidon.PARTIAL_ROUNDS):
            full_round = round_no < half_full or \
                round_no >= half_full + Poseidon.PARTIAL_ROUNDS
            state = Poseidon.ark(state, constant_idx)
            constant_idx += Poseidon.WIDTH
            state = Poseidon.sbox(state, full_round)
            state = Poseidon.mix(state)

        return state

    @staticmethod
    def hash(inputs: Sequence[int]) -> int:
        """Hash one or two field elements"""
        if len(inputs) == 2:
            state = [Poseidon.CAPACITY_TWO_INPUTS, inputs[0], inputs[1]]
        elif len(inputs) == 1:
            state = [Poseidon.CAPACITY_ONE_INPUT, inputs[0], 0]
        else:
            raise ValueError("Poseidon expects 1 or 2 inputs for t=3")

        for value in inputs:
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"Hash input must be an int, got {value!r}")
            if value < 0 or value >= Poseidon.PRIME:
                raise ValueError(f"Value {value} outside field bounds")

        return Poseidon.permute(state)[1]


def poseidon_hash(*inputs: int) -> int:
    """H(a) or H(a, b)"""
    return Poseidon.hash(inputs)
