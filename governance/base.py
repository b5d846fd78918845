"""
Shared Governance Core

Proposal book, vote book, lifecycle transitions and the operation guard used
by both voting modes.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import replace
from typing import Any, Dict, List, Optional, Tuple

from .authorization import AuthorizationPolicy, Operation, RoleBasedPolicy
from .events import EventLog
from .exceptions import AuthorizationError, StateError, ValidationError
from .ledger import Clock, SystemClock, normalize_address
from .proposals import Proposal, ProposalState, Vote, VotingParameters

logger = logging.getLogger(__name__)

_guards_lock = threading.Lock()


class OperationGuard:
    """
    Serialises mutating operations and rejects reentrant ones.

    Pending events are committed (and subscribers notified) only when the
    operation body completes; on failure they are discarded.
    """

    def __init__(self, events: EventLog):
        self.events = events
        self._lock = threading.RLock()
        self._active: Optional[str] = None

    @classmethod
    def for_events(cls, events: EventLog) -> 'OperationGuard':
        """One guard per event log: components sharing a log share its pending events"""
        with _guards_lock:
            if events.guard is None:
                events.guard = cls(events)
            return events.guard

    @property
    def active_operation(self) -> Optional[str]:
        return self._active

    @contextmanager
    def operation(self, name: str):
        with self._lock:
            if self._active is not None:
                logger.warning(f"Reentrant call to {name} during {self._active}")
                raise StateError("Reentrant call rejected")
            self._active = name
            try:
                try:
                    yield
                except BaseException:
                    self.events.rollback()
                    raise
                self.events.commit()
            finally:
                self._active = None


class GovernanceBase:
    """State and operations common to public and private voting"""

    mode = "base"

    def __init__(self, policy: AuthorizationPolicy, clock: Optional[Clock] = None,
                 events: Optional[EventLog] = None,
                 voting_params: Optional[VotingParameters] = None):
        self.policy = policy
        self.clock = clock or SystemClock()
        self.events = events if events is not None else EventLog()
        self.voting_params = voting_params or VotingParameters()
        self._proposals: Dict[int, Proposal] = {}
        self._votes: Dict[Tuple[int, str], Vote] = {}
        self._guard = OperationGuard.for_events(self.events)

    def _operation(self, name: str):
        return self._guard.operation(f"{self.mode}.{name}")

    def _caller(self, caller: str) -> str:
        return normalize_address(caller, "caller")

    def _is_admin(self, caller: str) -> bool:
        return isinstance(self.policy, RoleBasedPolicy) and self.policy.is_admin(caller)

    # ------------------------------------------------------------------
    # Parameters
    # ------------------------------------------------------------------

    def update_voting_parameters(self, caller: str, voting_delay: int, voting_period: int,
                                 proposal_threshold: int, quorum_percentage: int):
        """Applies to proposals created afterwards; existing ones keep their snapshot"""
        with self._operation("update_voting_parameters"):
            self.policy.require(caller, Operation.UPDATE_VOTING_PARAMETERS)
            params = replace(
                self.voting_params,
                voting_delay=voting_delay,
                voting_period=voting_period,
                proposal_threshold=proposal_threshold,
                quorum_percentage=quorum_percentage,
            )
            self.voting_params = params
            self.events.emit("VotingParametersUpdated", voting_delay=voting_delay,
                             voting_period=voting_period,
                             proposal_threshold=proposal_threshold,
                             quorum_percentage=quorum_percentage)
            logger.info(f"[{self.mode}] Voting parameters updated: {params}")

    # ------------------------------------------------------------------
    # Proposal lifecycle
    # ------------------------------------------------------------------

    def _validate_text(self, title: str, description: str):
        if not isinstance(title, str) or not title.strip():
            raise ValidationError("Title cannot be empty")
        if not isinstance(description, str) or not description.strip():
            raise ValidationError("Description cannot be empty")

    def _create_proposal(self, proposer: str, title: str, description: str,
                         eligible_weight: int, **extra) -> Proposal:
        now = self.clock.now()
        params = self.voting_params
        proposal_id = len(self._proposals) + 1
        voting_start = now + params.voting_delay
        proposal = Proposal(
            id=proposal_id,
            title=title,
            description=description,
            proposer=proposer,
            created_at=now,
            voting_start=voting_start,
            voting_deadline=voting_start + params.voting_period,
            eligible_weight=eligible_weight,
            quorum_percentage=params.quorum_percentage,
            **extra,
        )
        self._proposals[proposal_id] = proposal
        self.events.emit("ProposalCreated", proposal_id=proposal_id, proposer=proposer,
                         title=title, voting_start=proposal.voting_start,
                         voting_deadline=proposal.voting_deadline)
        logger.info(f"[{self.mode}] Proposal {proposal_id} created by {proposer}")
        return proposal

    def _require_proposal(self, proposal_id: int) -> Proposal:
        if isinstance(proposal_id, bool) or not isinstance(proposal_id, int):
            raise ValidationError(f"Invalid proposal ID: {proposal_id!r}")
        proposal = self._proposals.get(proposal_id)
        if proposal is None:
            raise ValidationError("Invalid proposal ID")
        return proposal

    def start_voting(self, caller: str, proposal_id: int):
        with self._operation("start_voting"):
            self.policy.require(caller, Operation.START_VOTING)
            proposal = self._require_proposal(proposal_id)
            old_state = proposal.state
            proposal.start_voting(self.clock.now())
            self.events.emit("ProposalStateChanged", proposal_id=proposal_id,
                             old_state=old_state.value, new_state=proposal.state.value)

    def finalize_proposal(self, caller: str, proposal_id: int) -> ProposalState:
        with self._operation("finalize_proposal"):
            self.policy.require(caller, Operation.FINALIZE_PROPOSAL)
            proposal = self._require_proposal(proposal_id)
            old_state = proposal.state
            result = proposal.finalize(self.clock.now())
            self.events.emit("ProposalStateChanged", proposal_id=proposal_id,
                             old_state=old_state.value, new_state=result.value)
            logger.info(
                f"[{self.mode}] Proposal {proposal_id} finalized as {result.value} "
                f"(yes={proposal.yes_weight}, no={proposal.no_weight}, "
                f"total={proposal.total_weight}, eligible={proposal.eligible_weight})")
            return result

    def cancel_proposal(self, caller: str, proposal_id: int):
        with self._operation("cancel_proposal"):
            account = self._caller(caller)
            proposal = self._require_proposal(proposal_id)
            if account != proposal.proposer and \
                    not self.policy.allow(account, Operation.CANCEL_ANY_PROPOSAL):
                raise AuthorizationError("Only proposer or owner can cancel")
            old_state = proposal.state
            proposal.cancel()
            self.events.emit("ProposalStateChanged", proposal_id=proposal_id,
                             old_state=old_state.value, new_state=proposal.state.value)

    def _record_vote(self, proposal: Proposal, voter_key: str, support, weight: int) -> Vote:
        now = self.clock.now()
        vote = Vote(proposal_id=proposal.id, voter_key=voter_key,
                    support=support, weight=weight, timestamp=now)
        proposal.record_vote(vote, now)
        self._votes[(proposal.id, voter_key)] = vote
        return vote

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_proposal(self, proposal_id: int) -> Proposal:
        return self._require_proposal(proposal_id)

    def get_vote(self, proposal_id: int, voter_key: str) -> Optional[Vote]:
        return self._votes.get((proposal_id, voter_key.lower()))

    def has_voted(self, proposal_id: int, voter_key: str) -> bool:
        return (proposal_id, voter_key.lower()) in self._votes

    def votes_for(self, proposal_id: int) -> List[Vote]:
        return [v for (pid, _), v in self._votes.items() if pid == proposal_id]

    @property
    def proposal_count(self) -> int:
        return len(self._proposals)

    def list_proposals(self, state: Optional[ProposalState] = None) -> List[Proposal]:
        proposals = sorted(self._proposals.values(), key=lambda p: p.id)
        if state is None:
            return proposals
        return [p for p in proposals if p.state is state]

    def export_state(self) -> Dict[str, Any]:
        return {
            "mode": self.mode,
            "voting_parameters": {
                "voting_delay": self.voting_params.voting_delay,
                "voting_period": self.voting_params.voting_period,
                "proposal_threshold": self.voting_params.proposal_threshold,
                "quorum_percentage": self.voting_params.quorum_percentage,
                "quorum_basis": self.voting_params.quorum_basis.value,
            },
            "proposals": [p.to_dict() for p in self.list_proposals()],
            "votes": [v.to_dict() for v in self._votes.values()],
        }
