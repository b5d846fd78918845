"""
Fixed-Depth Merkle Membership Tree

Leaves are registered commitments in insertion order, padded on the right
with ZERO_LEAF up to 2^depth. Padding is never materialised: empty subtrees
are represented by precomputed zero hashes, which gives the same root as the
fully padded tree.
"""

import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .poseidon import FieldLike, parse_field_element, poseidon_hash

logger = logging.getLogger(__name__)

ZERO_LEAF = 0
DEFAULT_TREE_DEPTH = 20
MAX_TREE_DEPTH = 32


def validate_depth(depth: int) -> int:
    if isinstance(depth, bool) or not isinstance(depth, int):
        raise ValueError(f"Tree depth must be an int, got {depth!r}")
    if depth < 1 or depth > MAX_TREE_DEPTH:
        raise ValueError(
            f"Tree depth {depth} outside supported range 1..{MAX_TREE_DEPTH}")
    return depth


@lru_cache(maxsize=None)
def zero_hashes(depth: int) -> Tuple[int, ...]:
    """Hash of an all-zero subtree at each level, level 0 being the leaf"""
    empty = [ZERO_LEAF]
    for _ in range(depth):
        empty.append(poseidon_hash(empty[-1], empty[-1]))
    return tuple(empty)


def compute_root_from_path(leaf: int, path_elements: Sequence[int], path_indices: Sequence[int]) -> int:
    """Fold a leaf up its authentication path"""
    if len(path_elements) != len(path_indices):
        raise ValueError(
            f"Path length mismatch: {len(path_elements)} elements, {len(path_indices)} indices")

    current = leaf
    for sibling, direction in zip(path_elements, path_indices):
        if direction == 0:
            current = poseidon_hash(current, sibling)
        elif direction == 1:
            current = poseidon_hash(sibling, current)
        else:
            raise ValueError(f"Path index must be 0 or 1, got {direction!r}")
    return current


@dataclass(frozen=True)
class TreeEpoch:
    """Versioned tree depth; a depth change always starts a new epoch"""
    number: int = 0
    depth: int = DEFAULT_TREE_DEPTH

    def __post_init__(self):
        validate_depth(self.depth)
        if self.number < 0:
            raise ValueError("Epoch number must be non-negative")

    def next(self, depth: Optional[int] = None) -> 'TreeEpoch':
        return TreeEpoch(number=self.number + 1,
                         depth=self.depth if depth is None else depth)


@dataclass
class MerkleProof:
    """Inclusion proof: siblings and direction bits from leaf to root"""
    leaf: int
    leaf_index: int
    path_elements: List[int]
    path_indices: List[int]
    root: int

    @property
    def depth(self) -> int:
        return len(self.path_elements)

    def compute_root(self) -> int:
        return compute_root_from_path(self.leaf, self.path_elements, self.path_indices)

    def to_dict(self) -> Dict[str, Any]:
        """Circuit-friendly representation (decimal strings)"""
        return {
            "leaf": str(self.leaf),
            "leafIndex": self.leaf_index,
            "pathElements": [str(e) for e in self.path_elements],
            "pathIndices": list(self.path_indices),
            "root": str(self.root),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MerkleProof':
        return cls(
            leaf=parse_field_element(data["leaf"]),
            leaf_index=int(data["leafIndex"]),
            path_elements=[parse_field_element(e) for e in data["pathElements"]],
            path_indices=[int(i) for i in data["pathIndices"]],
            root=parse_field_element(data["root"]),
        )


@dataclass
class MerkleTree:
    """Binary Poseidon Merkle tree over an ordered leaf sequence"""
    depth: int = DEFAULT_TREE_DEPTH
    leaves: List[int] = field(default_factory=list)
    levels: List[List[int]] = field(default_factory=list, init=False, repr=False)

    def __post_init__(self):
        validate_depth(self.depth)
        self.leaves = [parse_field_element(leaf) for leaf in self.leaves]
        if len(self.leaves) > self.capacity:
            raise ValueError(
                f"{len(self.leaves)} leaves exceed capacity {self.capacity} of depth {self.depth}")
        self._build()

    @classmethod
    def build(cls, leaves: Iterable[FieldLike], depth: int = DEFAULT_TREE_DEPTH) -> 'MerkleTree':
        return cls(depth=depth, leaves=list(leaves))

    @property
    def capacity(self) -> int:
        return 1 << self.depth

    @property
    def zeros(self) -> Tuple[int, ...]:
        return zero_hashes(self.depth)

    def __len__(self) -> int:
        return len(self.leaves)

    def _build(self):
        """Combine pairs bottom-up; missing right siblings are zero subtrees"""
        zeros = self.zeros
        self.levels = [list(self.leaves)]
        for level in range(self.depth):
            current = self.levels[level]
            parents = []
            for i in range(0, len(current), 2):
                left = current[i]
                right = current[i + 1] if i + 1 < len(current) else zeros[level]
                parents.append(poseidon_hash(left, right))
            self.levels.append(parents)

    @property
    def root(self) -> int:
        top = self.levels[self.depth]
        return top[0] if top else self.zeros[self.depth]

    def append(self, leaf: FieldLike) -> int:
        """Append a leaf, update its path and return the new root"""
        value = parse_field_element(leaf)
        if len(self.leaves) >= self.capacity:
            raise ValueError(f"Tree of depth {self.depth} is full")

        self.leaves.append(value)
        self.levels[0].append(value)
        zeros = self.zeros
        index = len(self.leaves) - 1
        for level in range(self.depth):
            nodes = self.levels[level]
            parent = index // 2
            left = nodes[2 * parent]
            right = nodes[2 * parent + 1] if 2 * parent + 1 < len(nodes) else zeros[level]
            parents = self.levels[level + 1]
            if parent < len(parents):
                parents[parent] = poseidon_hash(left, right)
            else:
                parents.append(poseidon_hash(left, right))
            index = parent

        return self.root

    def index_of(self, leaf: FieldLike) -> int:
        value = parse_field_element(leaf)
        try:
            return self.leaves.index(value)
        except ValueError:
            raise ValueError(f"Leaf {value} not in tree") from None

    def get_proof(self, index: int) -> MerkleProof:
        """Inclusion proof for the leaf at index"""
        if index < 0 or index >= len(self.leaves):
            raise ValueError(
                f"Index {index} out of bounds for {len(self.leaves)} leaves")

        zeros = self.zeros
        path_elements = []
        path_indices = []
        current_index = index
        for level in range(self.depth):
            nodes = self.levels[level]
            sibling_idx = current_index ^ 1
            sibling = nodes[sibling_idx] if sibling_idx < len(nodes) else zeros[level]
            path_elements.append(sibling)
            path_indices.append(current_index & 1)
            current_index //= 2

        return MerkleProof(
            leaf=self.leaves[index],
            leaf_index=index,
            path_elements=path_elements,
            path_indices=path_indices,
            root=self.root,
        )

    @staticmethod
    def verify_proof(leaf: FieldLike, proof: MerkleProof, root: FieldLike) -> bool:
        """Recompute the root from leaf and path and compare to the claimed root"""
        try:
            value = parse_field_element(leaf)
            claimed = parse_field_element(root)
            return compute_root_from_path(value, proof.path_elements, proof.path_indices) == claimed
        except ValueError as e:
            logger.warning(f"Malformed Merkle proof rejected: {e}")
            return False


def compute_root(leaves: Iterable[FieldLike], depth: int = DEFAULT_TREE_DEPTH) -> int:
    return MerkleTree.build(leaves, depth).root
