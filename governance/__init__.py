"""
Governance Module
Proposal lifecycle, weighted tally and public/private voting modes
"""

from .exceptions import (
    GovernanceError,
    ValidationError,
    AuthorizationError,
    StateError,
    DuplicateError,
    ProofError,
    ConsistencyError,
    ParameterError,
)
from .authorization import AuthorizationPolicy, Operation, Role, RoleBasedPolicy
from .ledger import (
    AllowAllEligibility,
    AllowListEligibility,
    Clock,
    EligibilityOracle,
    InMemoryTokenLedger,
    ManualClock,
    SystemClock,
    TokenLedger,
    normalize_address,
)
from .events import Event, EventLog
from .registries import CommitmentRegistry, NullifierRegistry, VoterRegistry
from .reputation import (
    DEFAULT_REPUTATION,
    MAX_REPUTATION,
    MIN_REPUTATION,
    ReputationManager,
    ReputationRecord,
)
from .tally import BASIS_POINTS, DEFAULT_REP_SCALE, Support, Tally, WeightCalculator, WeightParameters
from .proposals import Proposal, ProposalState, QuorumBasis, Vote, VotingParameters
from .base import GovernanceBase, OperationGuard
from .public_voting import PublicGovernance
from .private_voting import PrivateGovernance

__all__ = [
    # Exceptions
    'GovernanceError',
    'ValidationError',
    'AuthorizationError',
    'StateError',
    'DuplicateError',
    'ProofError',
    'ConsistencyError',
    'ParameterError',

    # Collaborators
    'AuthorizationPolicy',
    'Operation',
    'Role',
    'RoleBasedPolicy',
    'AllowAllEligibility',
    'AllowListEligibility',
    'Clock',
    'EligibilityOracle',
    'InMemoryTokenLedger',
    'ManualClock',
    'SystemClock',
    'TokenLedger',
    'normalize_address',
    'Event',
    'EventLog',

    # Components
    'CommitmentRegistry',
    'NullifierRegistry',
    'VoterRegistry',
    'DEFAULT_REPUTATION',
    'MAX_REPUTATION',
    'MIN_REPUTATION',
    'ReputationManager',
    'ReputationRecord',
    'BASIS_POINTS',
    'DEFAULT_REP_SCALE',
    'Support',
    'Tally',
    'WeightCalculator',
    'WeightParameters',
    'Proposal',
    'ProposalState',
    'QuorumBasis',
    'Vote',
    'VotingParameters',
    'GovernanceBase',
    'OperationGuard',
    'PublicGovernance',
    'PrivateGovernance',
]
