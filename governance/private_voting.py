"""
Private Zero-Knowledge Voting

Voters register a commitment H(secret). An authorized updater publishes the
voter-set root explicitly, and each proposal snapshots the root current at
creation. A vote carries a proof that its nullifier belongs to some leaf under
that snapshot; the nullifier is spent before the vote is recorded.
"""

import logging
from typing import Any, Dict, List, Optional

from zk.merkle import TreeEpoch
from zk.poseidon import FieldLike, parse_field_element, to_field_hex
from zk.verifier import ProofSystemError, ProofVerifier, PublicSignals

from .authorization import AuthorizationPolicy, Operation
from .base import GovernanceBase
from .events import EventLog
from .exceptions import (
    AuthorizationError,
    ConsistencyError,
    DuplicateError,
    ProofError,
    StateError,
    ValidationError,
)
from .ledger import AllowAllEligibility, Clock, EligibilityOracle
from .proposals import Proposal, VotingParameters
from .registries import CommitmentRegistry, NullifierRegistry
from .tally import Support

logger = logging.getLogger(__name__)


def _parse_field(value: FieldLike, label: str) -> int:
    try:
        return parse_field_element(value)
    except ValueError as e:
        raise ValidationError(f"Invalid {label}: {e}") from None


class PrivateGovernance(GovernanceBase):
    """Anonymous one-commitment-one-vote governance"""

    mode = "private"

    def __init__(self, verifier: ProofVerifier, policy: AuthorizationPolicy,
                 clock: Optional[Clock] = None, events: Optional[EventLog] = None,
                 voting_params: Optional[VotingParameters] = None,
                 eligibility: Optional[EligibilityOracle] = None,
                 epoch: Optional[TreeEpoch] = None):
        super().__init__(policy, clock, events, voting_params)
        self.verifier = verifier
        self.eligibility = eligibility if eligibility is not None else AllowAllEligibility()
        self.commitments = CommitmentRegistry(epoch or TreeEpoch())
        self.nullifiers = NullifierRegistry()
        self._voter_set_root: Optional[int] = None
        self._root_leaf_count = 0

    @property
    def epoch(self) -> TreeEpoch:
        return self.commitments.epoch

    @property
    def current_voter_set_root(self) -> Optional[int]:
        return self._voter_set_root

    # ------------------------------------------------------------------
    # Registration and root rotation
    # ------------------------------------------------------------------

    def register_voter(self, caller: str, commitment: FieldLike) -> int:
        """Self-registration of one commitment per identity per epoch"""
        with self._operation("register_voter"):
            identity = self._caller(caller)
            self.policy.require(identity, Operation.REGISTER_COMMITMENT)
            if not self.eligibility.is_eligible(identity):
                raise AuthorizationError(f"Identity {identity} is not eligible to register")
            index = self.commitments.register(commitment, registrant=identity)
            value = self.commitments.commitment_at(index)
            self.events.emit("CommitmentRegistered", commitment=to_field_hex(value),
                             index=index, epoch=self.epoch.number)
            logger.info(f"Registered commitment #{index} in epoch {self.epoch.number}")
            return index

    def batch_register_voters(self, caller: str, commitments: List[FieldLike]) -> List[int]:
        with self._operation("batch_register_voters"):
            self.policy.require(caller, Operation.BATCH_REGISTER_VOTERS)
            if not commitments:
                raise ValidationError("Empty commitment batch")
            indices = self.commitments.register_many(commitments)
            for index in indices:
                self.events.emit(
                    "CommitmentRegistered",
                    commitment=to_field_hex(self.commitments.commitment_at(index)),
                    index=index, epoch=self.epoch.number)
            logger.info(f"Batch registered {len(indices)} commitments")
            return indices

    def compute_registry_root(self) -> int:
        """Root over the registered commitments right now"""
        return self.commitments.root()

    def update_voter_set_root(self, caller: str, new_root: FieldLike,
                              expected_current: Optional[FieldLike] = None):
        """
        Publish a new current root. The root must describe the registered
        commitments; expected_current turns the update into a compare-and-set.
        """
        with self._operation("update_voter_set_root"):
            self.policy.require(caller, Operation.UPDATE_VOTER_SET_ROOT)
            root = _parse_field(new_root, "root")
            if expected_current is not None:
                expected = _parse_field(expected_current, "expected root")
                if expected != self._voter_set_root:
                    raise ConsistencyError("Current root changed since it was read")
            if root != self.commitments.root():
                raise ConsistencyError("Root does not match the registered commitments")

            old_root = self._voter_set_root
            self._voter_set_root = root
            self._root_leaf_count = self.commitments.count
            self.events.emit(
                "VoterSetRootUpdated",
                old_root=None if old_root is None else to_field_hex(old_root),
                new_root=to_field_hex(root), leaf_count=self._root_leaf_count,
                epoch=self.epoch.number)
            logger.info(
                f"Voter set root rotated to {to_field_hex(root)} ({self._root_leaf_count} leaves)")

    def start_new_epoch(self, caller: str, depth: Optional[int] = None) -> TreeEpoch:
        """Fresh commitment registry (optionally at a new depth); full re-registration"""
        with self._operation("start_new_epoch"):
            self.policy.require(caller, Operation.START_NEW_EPOCH)
            try:
                epoch = self.epoch.next(depth)
            except ValueError as e:
                raise ValidationError(str(e)) from None
            self.commitments = CommitmentRegistry(epoch)
            self._voter_set_root = None
            self._root_leaf_count = 0
            self.events.emit("EpochStarted", epoch=epoch.number, depth=epoch.depth)
            logger.info(f"Started epoch {epoch.number} at depth {epoch.depth}")
            return epoch

    def is_commitment_registered(self, commitment: FieldLike) -> bool:
        return commitment in self.commitments

    def is_nullifier_spent(self, proposal_id: int, nullifier: FieldLike) -> bool:
        return self.nullifiers.is_spent(proposal_id, _parse_field(nullifier, "nullifier"))

    # ------------------------------------------------------------------
    # Proposals and votes
    # ------------------------------------------------------------------

    def submit_proposal(self, caller: str, title: str, description: str) -> int:
        with self._operation("submit_proposal"):
            proposer = self._caller(caller)
            self.policy.require(proposer, Operation.SUBMIT_PROPOSAL)
            self._validate_text(title, description)
            if self._voter_set_root is None:
                raise StateError("Voter set root not initialized")

            proposal = self._create_proposal(
                proposer, title, description,
                eligible_weight=self._root_leaf_count * self.voting_params.private_vote_weight,
                voter_set_root_snapshot=self._voter_set_root,
                epoch=self.epoch.number,
            )
            return proposal.id

    def cast_private_vote(self, caller: str, proposal_id: int, support, nullifier: FieldLike,
                          proof: Any, public_signals: Any) -> int:
        """
        Record an anonymous vote. Checks run in order: arguments, proposal
        window, signal consistency, root snapshot, nullifier, proof. Anyone may
        relay the vote; the caller is not linked to the voter.
        """
        with self._operation("cast_private_vote"):
            self.policy.require(caller, Operation.CAST_VOTE)
            choice = Support.parse(support)
            vote_choice = choice.vote_choice
            nullifier_value = _parse_field(nullifier, "nullifier")
            try:
                signals = PublicSignals.coerce(public_signals)
            except (KeyError, ValueError) as e:
                raise ValidationError(f"Invalid public signals: {e}") from None
            proposal = self._require_proposal(proposal_id)

            proposal.ensure_accepting_votes(self.clock.now())
            self._check_signals(proposal, signals, nullifier_value, vote_choice)

            if self.nullifiers.is_spent(proposal.id, nullifier_value):
                raise DuplicateError("Already voted")

            self._verify(proof, signals)

            self.nullifiers.mark_spent(proposal.id, nullifier_value)
            weight = self.voting_params.private_vote_weight
            self._record_vote(proposal, to_field_hex(nullifier_value), choice, weight)
            self.events.emit("PrivateVoteCast", proposal_id=proposal.id,
                             nullifier=to_field_hex(nullifier_value),
                             support=choice.name.lower(), weight=weight)
            logger.info(f"Private vote on proposal {proposal.id}: {choice.name}")
            return weight

    def _check_signals(self, proposal: Proposal, signals: PublicSignals,
                       nullifier: int, vote_choice: int):
        if signals.proposal_id != proposal.id:
            raise ConsistencyError("Public signals are for a different proposal")
        if signals.nullifier != nullifier:
            raise ConsistencyError("Nullifier does not match public signals")
        if signals.vote_choice != vote_choice:
            raise ConsistencyError("Vote choice does not match public signals")
        if signals.root != proposal.voter_set_root_snapshot:
            logger.warning(f"Stale root presented for proposal {proposal.id}")
            raise ConsistencyError("Root does not match the proposal snapshot")

    def _verify(self, proof: Any, signals: PublicSignals):
        try:
            valid = self.verifier.verify(proof, signals)
        except ProofSystemError as e:
            logger.error(f"Verifier backend failure: {e}")
            raise ProofError(f"Proof verification unavailable: {e}") from e
        if not valid:
            logger.warning("Rejected invalid vote proof")
            raise ProofError("Invalid proof")

    def export_state(self) -> Dict:
        state = super().export_state()
        state["epoch"] = {"number": self.epoch.number, "depth": self.epoch.depth}
        state["commitments"] = [to_field_hex(c) for c in self.commitments.commitments()]
        state["voter_set_root"] = (
            None if self._voter_set_root is None else to_field_hex(self._voter_set_root))
        state["spent_nullifiers"] = len(self.nullifiers)
        return state
