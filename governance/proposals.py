"""
Proposal State Machine

PENDING -> ACTIVE -> SUCCEEDED | DEFEATED, and PENDING | ACTIVE -> CANCELLED.
Transitions are monotonic; repeating or skipping one raises StateError.
"""

import logging
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from zk.poseidon import to_field_hex

from .exceptions import StateError, ValidationError
from .tally import Support, Tally

logger = logging.getLogger(__name__)

HOUR = 3600
DAY = 24 * HOUR
WEEK = 7 * DAY

MAX_VOTING_DELAY = 7 * DAY
MIN_VOTING_PERIOD = DAY
MAX_VOTING_PERIOD = 30 * DAY


class ProposalState(Enum):
    PENDING = "pending"
    ACTIVE = "active"
    SUCCEEDED = "succeeded"
    DEFEATED = "defeated"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (ProposalState.SUCCEEDED, ProposalState.DEFEATED, ProposalState.CANCELLED)


class QuorumBasis(Enum):
    """What quorum percentage is measured against"""
    REGISTERED_WEIGHT = "registered_weight"
    TOTAL_SUPPLY = "total_supply"


@dataclass(frozen=True)
class VotingParameters:
    voting_delay: int = HOUR
    voting_period: int = WEEK
    proposal_threshold: int = 1000 * 10 ** 18
    quorum_percentage: int = 40
    quorum_basis: QuorumBasis = QuorumBasis.REGISTERED_WEIGHT
    private_vote_weight: int = 1

    def __post_init__(self):
        for name in ("voting_delay", "voting_period", "proposal_threshold",
                     "quorum_percentage", "private_vote_weight"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValidationError(f"{name} must be an int, got {value!r}")
        if self.voting_delay < 0 or self.voting_delay > MAX_VOTING_DELAY:
            raise ValidationError("Voting delay too long")
        if self.voting_period < MIN_VOTING_PERIOD or self.voting_period > MAX_VOTING_PERIOD:
            raise ValidationError("Invalid voting period")
        if self.quorum_percentage <= 0 or self.quorum_percentage > 100:
            raise ValidationError("Invalid quorum percentage")
        if self.proposal_threshold < 0:
            raise ValidationError("Proposal threshold must be non-negative")
        if self.private_vote_weight <= 0:
            raise ValidationError("Private vote weight must be positive")
        if not isinstance(self.quorum_basis, QuorumBasis):
            raise ValidationError(f"Invalid quorum basis: {self.quorum_basis!r}")


@dataclass(frozen=True)
class Vote:
    """A recorded vote; voter_key is an address or a hex nullifier"""
    proposal_id: int
    voter_key: str
    support: Support
    weight: int
    timestamp: int

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["support"] = self.support.name.lower()
        return data


@dataclass
class Proposal:
    id: int
    title: str
    description: str
    proposer: str
    created_at: int
    voting_start: int
    voting_deadline: int
    eligible_weight: int
    quorum_percentage: int
    min_token_threshold: int = 0
    min_reputation_threshold: int = 0
    voter_set_root_snapshot: Optional[int] = None
    epoch: Optional[int] = None
    state: ProposalState = ProposalState.PENDING
    tally: Tally = field(default_factory=Tally)

    @property
    def yes_weight(self) -> int:
        return self.tally.yes_weight

    @property
    def no_weight(self) -> int:
        return self.tally.no_weight

    @property
    def abstain_weight(self) -> int:
        return self.tally.abstain_weight

    @property
    def total_weight(self) -> int:
        return self.tally.total_weight

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def start_voting(self, now: int):
        if self.state is not ProposalState.PENDING:
            raise StateError(f"Proposal {self.id} not pending (state: {self.state.value})")
        if now < self.voting_start:
            raise StateError(f"Voting for proposal {self.id} has not started yet")
        self._transition(ProposalState.ACTIVE)

    def ensure_accepting_votes(self, now: int):
        if self.state is not ProposalState.ACTIVE:
            raise StateError("Proposal not active")
        if now >= self.voting_deadline:
            raise StateError("Voting period has ended")

    def record_vote(self, vote: Vote, now: int):
        self.ensure_accepting_votes(now)
        self.tally.record(vote.support, vote.weight)

    def quorum_reached(self) -> bool:
        return self.total_weight * 100 >= self.eligible_weight * self.quorum_percentage

    def outcome(self) -> ProposalState:
        if self.yes_weight > self.no_weight and self.quorum_reached():
            return ProposalState.SUCCEEDED
        return ProposalState.DEFEATED

    def finalize(self, now: int) -> ProposalState:
        if self.state is not ProposalState.ACTIVE:
            raise StateError("Proposal not active")
        if now < self.voting_deadline:
            raise StateError("Voting period not ended")
        result = self.outcome()
        self._transition(result)
        return result

    def cancel(self):
        if self.state not in (ProposalState.PENDING, ProposalState.ACTIVE):
            raise StateError(
                f"Proposal {self.id} cannot be cancelled in state {self.state.value}")
        self._transition(ProposalState.CANCELLED)

    def _transition(self, new_state: ProposalState):
        logger.info(f"Proposal {self.id}: {self.state.value} -> {new_state.value}")
        self.state = new_state

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "proposer": self.proposer,
            "created_at": self.created_at,
            "voting_start": self.voting_start,
            "voting_deadline": self.voting_deadline,
            "state": self.state.value,
            "min_token_threshold": self.min_token_threshold,
            "min_reputation_threshold": self.min_reputation_threshold,
            "eligible_weight": self.eligible_weight,
            "quorum_percentage": self.quorum_percentage,
            "voter_set_root_snapshot": (
                None if self.voter_set_root_snapshot is None
                else to_field_hex(self.voter_set_root_snapshot)),
            "epoch": self.epoch,
            **self.tally.to_dict(),
        }
