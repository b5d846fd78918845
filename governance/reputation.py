"""
Reputation Records

Scores in [MIN_REPUTATION, MAX_REPUTATION] maintained by authorized updaters.
An inactive record contributes no voting weight.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Dict, List, Optional

from .authorization import Operation, Role, RoleBasedPolicy
from .base import OperationGuard
from .events import EventLog
from .exceptions import DuplicateError, StateError, ValidationError
from .ledger import Clock, SystemClock, normalize_address

logger = logging.getLogger(__name__)

MIN_REPUTATION = 1
MAX_REPUTATION = 1000
DEFAULT_REPUTATION = 50

# Weight bps range a score maps onto
MIN_REPUTATION_WEIGHT_BPS = 100
MAX_REPUTATION_WEIGHT_BPS = 10_000


@dataclass
class ReputationRecord:
    subject: str
    score: int
    active: bool
    last_updated: int

    def to_dict(self) -> Dict:
        return asdict(self)


def validate_score(score: int) -> int:
    if isinstance(score, bool) or not isinstance(score, int):
        raise ValidationError(f"Reputation score must be an int, got {score!r}")
    if score < MIN_REPUTATION or score > MAX_REPUTATION:
        raise ValidationError(
            f"Reputation score {score} outside [{MIN_REPUTATION}, {MAX_REPUTATION}]")
    return score


class ReputationManager:
    """Reputation store with updater-gated mutation entry points"""

    def __init__(self, policy: RoleBasedPolicy, events: Optional[EventLog] = None,
                 clock: Optional[Clock] = None):
        self.policy = policy
        self.events = events if events is not None else EventLog()
        self.clock = clock or SystemClock()
        self._records: Dict[str, ReputationRecord] = {}
        self._guard = OperationGuard.for_events(self.events)

    # ------------------------------------------------------------------
    # Updater management
    # ------------------------------------------------------------------

    def add_updater(self, caller: str, updater: str):
        with self._guard.operation("add_updater"):
            self.policy.require(caller, Operation.MANAGE_UPDATERS)
            account = normalize_address(updater, "updater")
            if self.policy.has_role(account, Role.REPUTATION_UPDATER):
                raise DuplicateError(f"{account} is already an updater")
            self.policy.grant(Role.REPUTATION_UPDATER, account)
            self.events.emit("UpdaterAdded", updater=account)

    def remove_updater(self, caller: str, updater: str):
        with self._guard.operation("remove_updater"):
            self.policy.require(caller, Operation.MANAGE_UPDATERS)
            account = normalize_address(updater, "updater")
            if not self.policy.has_role(account, Role.REPUTATION_UPDATER):
                raise StateError(f"{account} is not an updater")
            self.policy.revoke(Role.REPUTATION_UPDATER, account)
            self.events.emit("UpdaterRemoved", updater=account)

    def is_updater(self, account: str) -> bool:
        return self.policy.allow(account, Operation.UPDATE_REPUTATION)

    # ------------------------------------------------------------------
    # Mutation entry points
    # ------------------------------------------------------------------

    def initialize_reputation(self, caller: str, subject: str, score: int = DEFAULT_REPUTATION):
        with self._guard.operation("initialize_reputation"):
            self.policy.require(caller, Operation.UPDATE_REPUTATION)
            account = normalize_address(subject, "subject")
            validate_score(score)
            if account in self._records:
                raise DuplicateError(f"Reputation already initialized for {account}")
            self._create(account, score)

    def ensure_initialized(self, subject: str) -> bool:
        """
        Create a default record if none exists. Only for voting components that
        have already authorized the surrounding operation; returns True if created.
        """
        account = normalize_address(subject, "subject")
        if account in self._records:
            return False
        self._create(account, DEFAULT_REPUTATION)
        return True

    def update_reputation(self, caller: str, subject: str, new_score: int):
        with self._guard.operation("update_reputation"):
            self.policy.require(caller, Operation.UPDATE_REPUTATION)
            record = self._require_record(subject)
            validate_score(new_score)
            self._set_score(record, new_score)

    def batch_update_reputation(self, caller: str, subjects: List[str], scores: List[int]):
        with self._guard.operation("batch_update_reputation"):
            self.policy.require(caller, Operation.UPDATE_REPUTATION)
            if len(subjects) != len(scores):
                raise ValidationError(
                    f"Array length mismatch: {len(subjects)} subjects, {len(scores)} scores")
            records = [self._require_record(s) for s in subjects]
            for score in scores:
                validate_score(score)
            for record, score in zip(records, scores):
                self._set_score(record, score)
            logger.info(f"Batch updated reputation of {len(records)} subjects")

    def deactivate_user(self, caller: str, subject: str):
        with self._guard.operation("deactivate_user"):
            self.policy.require(caller, Operation.UPDATE_REPUTATION)
            record = self._require_record(subject)
            if not record.active:
                raise StateError(f"Reputation of {record.subject} already inactive")
            record.active = False
            record.last_updated = self.clock.now()
            self.events.emit("UserDeactivated", subject=record.subject)
            logger.info(f"Deactivated reputation of {record.subject}")

    def reactivate_user(self, caller: str, subject: str):
        with self._guard.operation("reactivate_user"):
            self.policy.require(caller, Operation.UPDATE_REPUTATION)
            record = self._require_record(subject)
            if record.active:
                raise StateError(f"Reputation of {record.subject} already active")
            record.active = True
            record.last_updated = self.clock.now()
            self.events.emit("UserReactivated", subject=record.subject)
            logger.info(f"Reactivated reputation of {record.subject}")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_record(self, subject: str) -> Optional[ReputationRecord]:
        record = self._records.get(normalize_address(subject, "subject"))
        return None if record is None else ReputationRecord(**asdict(record))

    def has_active_reputation(self, subject: str) -> bool:
        record = self._records.get(normalize_address(subject, "subject"))
        return record is not None and record.active

    def get_score(self, subject: str) -> int:
        """Effective score: 0 when absent or inactive"""
        record = self._records.get(normalize_address(subject, "subject"))
        if record is None or not record.active:
            return 0
        return record.score

    def get_reputation_weight_bps(self, subject: str) -> int:
        """Linear map of the score onto [100, 10000] bps"""
        score = self.get_score(subject)
        if score == 0:
            return 0
        span = MAX_REPUTATION_WEIGHT_BPS - MIN_REPUTATION_WEIGHT_BPS
        return MIN_REPUTATION_WEIGHT_BPS + \
            (score - MIN_REPUTATION) * span // (MAX_REPUTATION - MIN_REPUTATION)

    def __len__(self) -> int:
        return len(self._records)

    # ------------------------------------------------------------------

    def _require_record(self, subject: str) -> ReputationRecord:
        account = normalize_address(subject, "subject")
        record = self._records.get(account)
        if record is None:
            raise StateError(f"Reputation not initialized for {account}")
        return record

    def _create(self, account: str, score: int):
        self._records[account] = ReputationRecord(
            subject=account, score=score, active=True, last_updated=self.clock.now())
        self.events.emit("ReputationInitialized", subject=account, score=score)
        logger.info(f"Initialized reputation of {account} at {score}")

    def _set_score(self, record: ReputationRecord, score: int):
        old_score = record.score
        record.score = score
        record.last_updated = self.clock.now()
        self.events.emit("ReputationUpdated", subject=record.subject,
                         old_score=old_score, new_score=score)
        logger.info(f"Reputation of {record.subject}: {old_score} -> {score}")
