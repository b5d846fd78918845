"""
Authorization Policy

Access control is an explicit allow(caller, operation) function evaluated at
the entry of every mutating call.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict, Iterable, Set

from .exceptions import AuthorizationError
from .ledger import normalize_address

logger = logging.getLogger(__name__)


class Operation(Enum):
    """Mutating entry points subject to the policy"""
    REGISTER_VOTER = "register_voter"
    REGISTER_COMMITMENT = "register_commitment"
    BATCH_REGISTER_VOTERS = "batch_register_voters"
    UPDATE_VOTER_SET_ROOT = "update_voter_set_root"
    START_NEW_EPOCH = "start_new_epoch"
    SUBMIT_PROPOSAL = "submit_proposal"
    START_VOTING = "start_voting"
    CAST_VOTE = "cast_vote"
    FINALIZE_PROPOSAL = "finalize_proposal"
    CANCEL_ANY_PROPOSAL = "cancel_any_proposal"
    UPDATE_WEIGHT_PARAMETERS = "update_weight_parameters"
    UPDATE_VOTING_PARAMETERS = "update_voting_parameters"
    UPDATE_REPUTATION = "update_reputation"
    MANAGE_UPDATERS = "manage_updaters"


class Role(Enum):
    ADMIN = "admin"
    REPUTATION_UPDATER = "reputation_updater"
    ROOT_UPDATER = "root_updater"


# Operations any identity may invoke; finer checks live in the components
OPEN_OPERATIONS = frozenset({
    Operation.REGISTER_COMMITMENT,
    Operation.SUBMIT_PROPOSAL,
    Operation.START_VOTING,
    Operation.CAST_VOTE,
    Operation.FINALIZE_PROPOSAL,
})

# Non-admin roles and the extra operations they unlock
ROLE_OPERATIONS = {
    Role.REPUTATION_UPDATER: frozenset({Operation.UPDATE_REPUTATION}),
    Role.ROOT_UPDATER: frozenset({Operation.UPDATE_VOTER_SET_ROOT}),
}


class AuthorizationPolicy(ABC):

    @abstractmethod
    def allow(self, caller: str, operation: Operation) -> bool:
        raise NotImplementedError

    def require(self, caller: str, operation: Operation):
        if not self.allow(caller, operation):
            logger.warning(f"Rejected {operation.value} by {caller}")
            raise AuthorizationError(
                f"Caller {caller} is not allowed to {operation.value}")


class RoleBasedPolicy(AuthorizationPolicy):
    """Admins may do everything; other roles unlock specific operations"""

    def __init__(self, admins: Iterable[str]):
        self._roles: Dict[Role, Set[str]] = {role: set() for role in Role}
        for admin in admins:
            self._roles[Role.ADMIN].add(normalize_address(admin, "admin"))
        if not self._roles[Role.ADMIN]:
            raise ValueError("At least one administrator is required")

    def has_role(self, account: str, role: Role) -> bool:
        return isinstance(account, str) and account.lower() in self._roles[role]

    def is_admin(self, account: str) -> bool:
        return self.has_role(account, Role.ADMIN)

    def members(self, role: Role) -> Set[str]:
        return set(self._roles[role])

    def grant(self, role: Role, account: str):
        self._roles[role].add(normalize_address(account, "account"))
        logger.info(f"Granted {role.value} to {account}")

    def revoke(self, role: Role, account: str):
        normalized = normalize_address(account, "account")
        if role is Role.ADMIN and self._roles[Role.ADMIN] == {normalized}:
            raise AuthorizationError("Cannot revoke the last administrator")
        self._roles[role].discard(normalized)
        logger.info(f"Revoked {role.value} from {account}")

    def allow(self, caller: str, operation: Operation) -> bool:
        if operation in OPEN_OPERATIONS:
            return True
        if self.is_admin(caller):
            return True
        return any(
            operation in operations and self.has_role(caller, role)
            for role, operations in ROLE_OPERATIONS.items()
        )
