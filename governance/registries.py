"""
Voter, Commitment and Nullifier Registries

All registries are append-only. Batch insertions validate the whole batch,
including duplicates inside the batch, before inserting anything.
"""

import logging
from typing import Dict, Iterable, List, Optional, Set, Tuple

from zk.merkle import ZERO_LEAF, MerkleTree, TreeEpoch
from zk.poseidon import FieldLike, parse_field_element

from .exceptions import DuplicateError, ValidationError
from .ledger import normalize_address

logger = logging.getLogger(__name__)


def parse_commitment(commitment: FieldLike) -> int:
    try:
        value = parse_field_element(commitment)
    except ValueError as e:
        raise ValidationError(f"Invalid commitment: {e}") from None
    if value == ZERO_LEAF:
        raise ValidationError("Commitment cannot equal the zero leaf")
    return value


class VoterRegistry:
    """Registered addresses for public weighted voting"""

    def __init__(self):
        self._voters: Set[str] = set()
        self._order: List[str] = []

    def __contains__(self, address: str) -> bool:
        return isinstance(address, str) and address.lower() in self._voters

    def __len__(self) -> int:
        return len(self._order)

    def addresses(self) -> List[str]:
        return list(self._order)

    def validate_new(self, addresses: Iterable[str]) -> List[str]:
        normalized = []
        seen = set()
        for address in addresses:
            voter = normalize_address(address, "voter address")
            if voter in self._voters or voter in seen:
                raise DuplicateError(f"Voter already registered: {voter}")
            seen.add(voter)
            normalized.append(voter)
        return normalized

    def add(self, address: str) -> str:
        return self.add_many([address])[0]

    def add_many(self, addresses: Iterable[str]) -> List[str]:
        voters = self.validate_new(addresses)
        for voter in voters:
            self._voters.add(voter)
            self._order.append(voter)
        return voters


class CommitmentRegistry:
    """
    Ordered arena of commitments for one tree epoch.

    The insertion index of a commitment is its leaf index, so any tooling can
    rebuild the tree from commitments(). An incremental tree tracks the root
    of the registered set; the root enforced by proposals is set separately.
    """

    def __init__(self, epoch: Optional[TreeEpoch] = None):
        self.epoch = epoch or TreeEpoch()
        self._commitments: List[int] = []
        self._index: Dict[int, int] = {}
        self._registrants: Dict[str, int] = {}
        self._tree = MerkleTree(depth=self.epoch.depth)

    @property
    def count(self) -> int:
        return len(self._commitments)

    @property
    def capacity(self) -> int:
        return self._tree.capacity

    def __contains__(self, commitment: FieldLike) -> bool:
        try:
            return parse_field_element(commitment) in self._index
        except ValueError:
            return False

    def commitment_at(self, index: int) -> int:
        if index < 0 or index >= len(self._commitments):
            raise ValidationError(
                f"Commitment index {index} out of range (count {self.count})")
        return self._commitments[index]

    def index_of(self, commitment: FieldLike) -> int:
        value = parse_commitment(commitment)
        if value not in self._index:
            raise ValidationError(f"Commitment {value} not registered")
        return self._index[value]

    def commitments(self) -> List[int]:
        return list(self._commitments)

    def commitment_of(self, registrant: str) -> Optional[int]:
        return self._registrants.get(registrant.lower())

    def root(self) -> int:
        return self._tree.root

    def build_tree(self) -> MerkleTree:
        return MerkleTree.build(self._commitments, self.epoch.depth)

    def validate_new(self, commitments: Iterable[FieldLike],
                     registrant: Optional[str] = None) -> List[int]:
        values = []
        seen = set()
        for commitment in commitments:
            value = parse_commitment(commitment)
            if value in self._index or value in seen:
                raise DuplicateError("Commitment already registered")
            seen.add(value)
            values.append(value)

        if registrant is not None and registrant.lower() in self._registrants:
            raise DuplicateError(
                f"Identity {registrant} already registered a commitment in epoch {self.epoch.number}")

        if self.count + len(values) > self.capacity:
            raise ValidationError(
                f"Registry full: capacity {self.capacity} at depth {self.epoch.depth}")
        return values

    def register(self, commitment: FieldLike, registrant: Optional[str] = None) -> int:
        """Append one commitment and return its leaf index"""
        value = self.validate_new([commitment], registrant)[0]
        index = self._append(value)
        if registrant is not None:
            self._registrants[registrant.lower()] = value
        return index

    def register_many(self, commitments: Iterable[FieldLike]) -> List[int]:
        values = self.validate_new(commitments)
        return [self._append(value) for value in values]

    def _append(self, value: int) -> int:
        index = len(self._commitments)
        self._commitments.append(value)
        self._index[value] = index
        self._tree.append(value)
        return index


class NullifierRegistry:
    """Spent (proposal id, nullifier) pairs; spending is monotonic"""

    def __init__(self):
        self._spent: Set[Tuple[int, int]] = set()

    def is_spent(self, proposal_id: int, nullifier: int) -> bool:
        return (proposal_id, nullifier) in self._spent

    def mark_spent(self, proposal_id: int, nullifier: int):
        key = (proposal_id, nullifier)
        if key in self._spent:
            raise DuplicateError("Already voted")
        self._spent.add(key)

    def spent_count(self, proposal_id: Optional[int] = None) -> int:
        if proposal_id is None:
            return len(self._spent)
        return sum(1 for pid, _ in self._spent if pid == proposal_id)

    def __len__(self) -> int:
        return len(self._spent)
