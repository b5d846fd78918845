"""
External Collaborators

The hosting ledger supplies caller identity, token balances and time; a
credential subsystem supplies a single "is eligible" check. In-memory
implementations back the CLI demos and the test suite.
"""

import logging
import re
import time
from abc import ABC, abstractmethod
from typing import Dict, Iterable, Optional

from .exceptions import ValidationError

logger = logging.getLogger(__name__)

ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")
ZERO_ADDRESS = "0x" + "0" * 40


def normalize_address(address: str, label: str = "address") -> str:
    """Validate an account address and return its lowercase form"""
    if not isinstance(address, str) or not ADDRESS_PATTERN.match(address):
        raise ValidationError(f"Invalid {label}: {address!r}")
    normalized = address.lower()
    if normalized == ZERO_ADDRESS:
        raise ValidationError(f"Invalid {label}: zero address")
    return normalized


# ============================================================================
# TOKEN LEDGER
# ============================================================================


class TokenLedger(ABC):
    """Read-only view of token balances owned by the hosting ledger"""

    @abstractmethod
    def balance_of(self, holder: str) -> int:
        raise NotImplementedError

    @abstractmethod
    def total_supply(self) -> int:
        raise NotImplementedError


class InMemoryTokenLedger(TokenLedger):
    """Dictionary-backed ledger with mint and transfer"""

    def __init__(self, balances: Optional[Dict[str, int]] = None):
        self._balances: Dict[str, int] = {}
        self._total_supply = 0
        for holder, amount in (balances or {}).items():
            self.mint(holder, amount)

    def balance_of(self, holder: str) -> int:
        return self._balances.get(normalize_address(holder, "holder"), 0)

    def total_supply(self) -> int:
        return self._total_supply

    def mint(self, to: str, amount: int):
        holder = normalize_address(to, "recipient")
        if amount < 0:
            raise ValidationError("Mint amount must be non-negative")
        self._balances[holder] = self._balances.get(holder, 0) + amount
        self._total_supply += amount
        logger.debug(f"Minted {amount} to {holder}")

    def transfer(self, sender: str, to: str, amount: int):
        source = normalize_address(sender, "sender")
        target = normalize_address(to, "recipient")
        if amount < 0:
            raise ValidationError("Transfer amount must be non-negative")
        if self._balances.get(source, 0) < amount:
            raise ValidationError("Insufficient balance")
        self._balances[source] -= amount
        self._balances[target] = self._balances.get(target, 0) + amount


# ============================================================================
# CLOCK
# ============================================================================


class Clock(ABC):
    """Ledger time in whole seconds"""

    @abstractmethod
    def now(self) -> int:
        raise NotImplementedError


class SystemClock(Clock):
    def now(self) -> int:
        return int(time.time())


class ManualClock(Clock):
    """Clock advanced explicitly; used by tests and demos"""

    def __init__(self, start: int = 1_700_000_000):
        self._now = start

    def now(self) -> int:
        return self._now

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError("Cannot move the clock backwards")
        self._now += seconds
        return self._now

    def set(self, timestamp: int):
        if timestamp < self._now:
            raise ValueError("Cannot move the clock backwards")
        self._now = timestamp


# ============================================================================
# ELIGIBILITY
# ============================================================================


class EligibilityOracle(ABC):
    """Boolean 'is eligible to register' check of the credential subsystem"""

    @abstractmethod
    def is_eligible(self, identity: str) -> bool:
        raise NotImplementedError


class AllowAllEligibility(EligibilityOracle):
    def is_eligible(self, identity: str) -> bool:
        return True


class AllowListEligibility(EligibilityOracle):
    """Eligibility granted to an explicit set of identities"""

    def __init__(self, identities: Iterable[str] = ()):
        self._allowed = {normalize_address(i, "identity") for i in identities}

    def allow(self, identity: str):
        self._allowed.add(normalize_address(identity, "identity"))

    def revoke(self, identity: str):
        self._allowed.discard(normalize_address(identity, "identity"))

    def is_eligible(self, identity: str) -> bool:
        return identity.lower() in self._allowed
