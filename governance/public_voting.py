"""
Public Weighted Voting

Registered addresses vote with a weight blended from token balance and
reputation score.
"""

import logging
from typing import Dict, List, Optional

from .authorization import AuthorizationPolicy, Operation
from .base import GovernanceBase
from .events import EventLog
from .exceptions import AuthorizationError, DuplicateError, ValidationError
from .ledger import AllowAllEligibility, Clock, EligibilityOracle, TokenLedger, normalize_address
from .proposals import Proposal, QuorumBasis, VotingParameters
from .registries import VoterRegistry
from .reputation import ReputationManager
from .tally import DEFAULT_REP_SCALE, Support, WeightCalculator, WeightParameters

logger = logging.getLogger(__name__)


def _validate_threshold(name: str, value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(f"{name} must be a non-negative int, got {value!r}")
    return value


class PublicGovernance(GovernanceBase):
    """Token + reputation weighted governance over registered addresses"""

    mode = "public"

    def __init__(self, ledger: TokenLedger, reputation: ReputationManager,
                 policy: AuthorizationPolicy, clock: Optional[Clock] = None,
                 events: Optional[EventLog] = None,
                 voting_params: Optional[VotingParameters] = None,
                 weight_params: Optional[WeightParameters] = None,
                 rep_scale: int = DEFAULT_REP_SCALE,
                 eligibility: Optional[EligibilityOracle] = None):
        super().__init__(policy, clock, events, voting_params)
        self.ledger = ledger
        self.eligibility = eligibility if eligibility is not None else AllowAllEligibility()
        self.reputation = reputation
        self.calculator = WeightCalculator(weight_params, rep_scale)
        self.voters = VoterRegistry()

    @property
    def weight_params(self) -> WeightParameters:
        return self.calculator.params

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_voter(self, caller: str, address: str) -> str:
        with self._operation("register_voter"):
            self.policy.require(caller, Operation.REGISTER_VOTER)
            self._require_eligible(address)
            voter = self.voters.add(address)
            self._on_registered(voter)
            return voter

    def batch_register_voters(self, caller: str, addresses: List[str]) -> List[str]:
        with self._operation("batch_register_voters"):
            self.policy.require(caller, Operation.BATCH_REGISTER_VOTERS)
            if not addresses:
                raise ValidationError("Empty voter batch")
            for address in addresses:
                self._require_eligible(address)
            voters = self.voters.add_many(addresses)
            for voter in voters:
                self._on_registered(voter)
            logger.info(f"Batch registered {len(voters)} voters")
            return voters

    def _require_eligible(self, address: str):
        voter = normalize_address(address, "voter")
        if not self.eligibility.is_eligible(voter):
            raise AuthorizationError(f"Address {voter} is not eligible to register")

    def _on_registered(self, voter: str):
        self.reputation.ensure_initialized(voter)
        self.events.emit("VoterRegistered", voter=voter)
        logger.info(f"Registered voter {voter}")

    def is_voter_registered(self, address: str) -> bool:
        return address in self.voters

    # ------------------------------------------------------------------
    # Weight
    # ------------------------------------------------------------------

    def get_voting_power_of(self, address: str) -> int:
        account = normalize_address(address)
        return self.calculator.weight(
            self.ledger.balance_of(account),
            self.reputation.get_score(account),
            self.reputation.has_active_reputation(account),
        )

    def update_weight_parameters(self, caller: str, token_weight_bps: int, reputation_weight_bps: int):
        with self._operation("update_weight_parameters"):
            self.policy.require(caller, Operation.UPDATE_WEIGHT_PARAMETERS)
            params = WeightParameters(token_weight_bps, reputation_weight_bps)
            self.calculator.params = params
            self.events.emit("WeightParametersUpdated",
                             token_weight_bps=token_weight_bps,
                             reputation_weight_bps=reputation_weight_bps)
            logger.info(f"Weight parameters updated: {token_weight_bps}/{reputation_weight_bps} bps")

    def eligible_weight(self) -> int:
        """Quorum basis at this instant"""
        if self.voting_params.quorum_basis is QuorumBasis.TOTAL_SUPPLY:
            return self.ledger.total_supply()
        return sum(self.get_voting_power_of(v) for v in self.voters.addresses())

    # ------------------------------------------------------------------
    # Proposals and votes
    # ------------------------------------------------------------------

    def submit_proposal(self, caller: str, title: str, description: str,
                        min_token_threshold: int = 0, min_reputation_threshold: int = 0) -> int:
        with self._operation("submit_proposal"):
            proposer = self._caller(caller)
            self.policy.require(proposer, Operation.SUBMIT_PROPOSAL)
            self._require_registered(proposer)
            self._validate_text(title, description)
            _validate_threshold("min_token_threshold", min_token_threshold)
            _validate_threshold("min_reputation_threshold", min_reputation_threshold)
            if self.get_voting_power_of(proposer) < self.voting_params.proposal_threshold:
                raise AuthorizationError("Insufficient tokens to create proposal")

            proposal = self._create_proposal(
                proposer, title, description,
                eligible_weight=self.eligible_weight(),
                min_token_threshold=min_token_threshold,
                min_reputation_threshold=min_reputation_threshold,
            )
            return proposal.id

    def cast_vote(self, caller: str, proposal_id: int, support) -> int:
        """Record a weighted vote and return the weight applied"""
        with self._operation("cast_vote"):
            voter = self._caller(caller)
            self.policy.require(voter, Operation.CAST_VOTE)
            self._require_registered(voter)
            choice = Support.parse(support)
            proposal = self._require_proposal(proposal_id)
            proposal.ensure_accepting_votes(self.clock.now())
            if (proposal.id, voter) in self._votes:
                raise DuplicateError("Already voted on this proposal")

            weight = self._check_vote_eligibility(proposal, voter)
            self._record_vote(proposal, voter, choice, weight)
            self.events.emit("VoteCast", proposal_id=proposal.id, voter=voter,
                             support=choice.name.lower(), weight=weight)
            logger.info(
                f"Vote on proposal {proposal.id} by {voter}: {choice.name} ({weight})")
            return weight

    def _check_vote_eligibility(self, proposal: Proposal, voter: str) -> int:
        balance = self.ledger.balance_of(voter)
        score = self.reputation.get_score(voter)
        if balance < proposal.min_token_threshold:
            raise AuthorizationError("Insufficient tokens to vote")
        if score < proposal.min_reputation_threshold:
            raise AuthorizationError("Insufficient reputation to vote")
        weight = self.calculator.weight(balance, score, self.reputation.has_active_reputation(voter))
        if weight == 0:
            raise AuthorizationError("No voting power")
        return weight

    def _require_registered(self, account: str):
        if account not in self.voters:
            raise AuthorizationError("Only registered voters can perform this action")

    def export_state(self) -> Dict:
        state = super().export_state()
        state["weight_parameters"] = {
            "token_weight_bps": self.weight_params.token_weight_bps,
            "reputation_weight_bps": self.weight_params.reputation_weight_bps,
            "rep_scale": self.calculator.rep_scale,
        }
        state["voters"] = self.voters.addresses()
        return state
