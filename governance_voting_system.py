#!/usr/bin/env python3
"""
Integrated Governance Voting System
===================================
Wires configuration, ledger collaborators, reputation, the proof verifier
and both voting modes (public weighted, private zero-knowledge) into one
object sharing a single policy, clock and event log.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Union

from config.config import SystemConfig, load_config
from governance.authorization import RoleBasedPolicy
from governance.events import EventLog
from governance.ledger import (
    AllowAllEligibility,
    Clock,
    EligibilityOracle,
    InMemoryTokenLedger,
    SystemClock,
    TokenLedger,
)
from governance.private_voting import PrivateGovernance
from governance.proposals import QuorumBasis, VotingParameters
from governance.public_voting import PublicGovernance
from governance.reputation import ReputationManager
from governance.tally import WeightParameters
from utils.utils import PerformanceMonitor
from zk.merkle import TreeEpoch
from zk.prover import create_prover
from zk.verifier import ProofVerifier, create_verifier

logger = logging.getLogger(__name__)

# ============================================================================
# INTEGRATED SYSTEM
# ============================================================================


def voting_parameters_from_config(config: SystemConfig) -> VotingParameters:
    voting = config.voting_config
    try:
        basis = QuorumBasis(voting.quorum_basis)
    except ValueError:
        raise ValueError(f"Unknown quorum basis: {voting.quorum_basis!r}") from None
    return VotingParameters(
        voting_delay=voting.voting_delay,
        voting_period=voting.voting_period,
        proposal_threshold=voting.proposal_threshold,
        quorum_percentage=voting.quorum_percentage,
        quorum_basis=basis,
        private_vote_weight=voting.private_vote_weight,
    )


def verifier_from_config(config: SystemConfig) -> ProofVerifier:
    zk = config.zk_config
    return create_verifier(
        zk.verifier_backend,
        verification_key=zk.verification_key,
        snarkjs_binary=zk.snarkjs_binary,
        timeout=zk.proof_timeout,
    )


class GovernanceVotingSystem:
    """
    Complete governance system:
    1. Public mode: registered addresses, token + reputation weight
    2. Private mode: commitments, explicit root rotation, nullifier-gated votes
    """

    def __init__(self, config: SystemConfig, admins: Iterable[str],
                 ledger: Optional[TokenLedger] = None,
                 clock: Optional[Clock] = None,
                 eligibility: Optional[EligibilityOracle] = None,
                 verifier: Optional[ProofVerifier] = None):
        self.config = config
        self.ledger = ledger if ledger is not None else InMemoryTokenLedger()
        self.clock = clock or SystemClock()
        self.policy = RoleBasedPolicy(admins)
        self.eligibility = eligibility if eligibility is not None else AllowAllEligibility()
        self.events = EventLog()
        self.performance_monitor = PerformanceMonitor(enabled=config.enable_benchmarking)

        voting_params = voting_parameters_from_config(config)
        weights = config.weight_config

        self.reputation = ReputationManager(self.policy, self.events, self.clock)

        self.public = PublicGovernance(
            ledger=self.ledger,
            reputation=self.reputation,
            policy=self.policy,
            clock=self.clock,
            events=self.events,
            voting_params=voting_params,
            weight_params=WeightParameters(weights.token_weight_bps, weights.reputation_weight_bps),
            rep_scale=weights.rep_scale,
            eligibility=self.eligibility,
        )

        self.private = PrivateGovernance(
            verifier=verifier or verifier_from_config(config),
            policy=self.policy,
            clock=self.clock,
            events=self.events,
            voting_params=voting_params,
            eligibility=self.eligibility,
            epoch=TreeEpoch(number=config.merkle_config.epoch, depth=config.merkle_config.depth),
        )

        logger.info(
            f"Governance system initialized (depth={config.merkle_config.depth}, "
            f"verifier={self.private.verifier.name}, quorum={voting_params.quorum_basis.value})")

    @classmethod
    def from_config(cls, config_path: Optional[Union[str, Path]], admins: Iterable[str],
                    **collaborators) -> 'GovernanceVotingSystem':
        config = load_config(Path(config_path) if config_path else None)
        return cls(config, admins, **collaborators)

    def create_prover(self):
        """Off-chain prover matching the configured backend"""
        zk = self.config.zk_config
        return create_prover(zk.verifier_backend, zk.wasm_file, zk.zkey_file,
                             zk.snarkjs_binary, zk.proof_timeout)

    def rotate_voter_set_root(self, caller: str) -> int:
        """Publish the root over the currently registered commitments"""
        with self.performance_monitor.start_operation("rotate_voter_set_root"):
            root = self.private.compute_registry_root()
            self.private.update_voter_set_root(
                caller, root, expected_current=self.private.current_voter_set_root)
            return root

    def get_system_metrics(self) -> Dict[str, Any]:
        return {
            'public': {
                'registered_voters': len(self.public.voters),
                'proposals': self.public.proposal_count,
                'weight_parameters': {
                    'token_weight_bps': self.public.weight_params.token_weight_bps,
                    'reputation_weight_bps': self.public.weight_params.reputation_weight_bps,
                    'rep_scale': self.public.calculator.rep_scale,
                },
            },
            'private': {
                'epoch': self.private.epoch.number,
                'tree_depth': self.private.epoch.depth,
                'registered_commitments': self.private.commitments.count,
                'spent_nullifiers': len(self.private.nullifiers),
                'proposals': self.private.proposal_count,
                'verifier_backend': self.private.verifier.name,
            },
            'reputation_records': len(self.reputation),
            'events': len(self.events),
            'performance': self.performance_monitor.get_summary(),
        }

    def export_state(self) -> Dict[str, Any]:
        return {
            'public': self.public.export_state(),
            'private': self.private.export_state(),
            'metrics': self.get_system_metrics(),
        }
