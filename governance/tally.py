"""
Weighted Tally Engine

weight = floor(balance * tokenBps / 10000) + floor(score * REP_SCALE * repBps / 10000)

REP_SCALE lifts the small reputation range to the magnitude of token base
units; the default treats one reputation point as one whole 18-decimal token.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict

from .exceptions import ParameterError, ValidationError

logger = logging.getLogger(__name__)

BASIS_POINTS = 10_000
DEFAULT_REP_SCALE = 10 ** 18
DEFAULT_TOKEN_WEIGHT_BPS = 7000
DEFAULT_REPUTATION_WEIGHT_BPS = 3000


class Support(Enum):
    """Vote direction; NO and YES double as the circuit's voteChoice"""
    NO = 0
    YES = 1
    ABSTAIN = 2

    @classmethod
    def parse(cls, value: Any) -> 'Support':
        if isinstance(value, Support):
            return value
        if isinstance(value, bool):
            return cls.YES if value else cls.NO
        if isinstance(value, int):
            for member in cls:
                if member.value == value:
                    return member
        if isinstance(value, str) and value.strip().upper() in cls.__members__:
            return cls[value.strip().upper()]
        raise ValidationError(f"Invalid support value: {value!r}")

    @property
    def vote_choice(self) -> int:
        if self is Support.ABSTAIN:
            raise ValidationError("Abstain has no private vote choice")
        return self.value


@dataclass(frozen=True)
class WeightParameters:
    token_weight_bps: int = DEFAULT_TOKEN_WEIGHT_BPS
    reputation_weight_bps: int = DEFAULT_REPUTATION_WEIGHT_BPS

    def __post_init__(self):
        for name in ("token_weight_bps", "reputation_weight_bps"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ParameterError(f"{name} must be a non-negative int, got {value!r}")
        if self.token_weight_bps + self.reputation_weight_bps != BASIS_POINTS:
            raise ParameterError("Weights must sum to 10000 basis points")


class WeightCalculator:
    """Blends token balance and reputation score into voting weight"""

    def __init__(self, params: WeightParameters = None, rep_scale: int = DEFAULT_REP_SCALE):
        if isinstance(rep_scale, bool) or not isinstance(rep_scale, int) or rep_scale <= 0:
            raise ParameterError(f"REP_SCALE must be a positive int, got {rep_scale!r}")
        self.params = params or WeightParameters()
        self.rep_scale = rep_scale

    def token_term(self, balance: int) -> int:
        return balance * self.params.token_weight_bps // BASIS_POINTS

    def reputation_term(self, score: int, active: bool = True) -> int:
        if not active:
            return 0
        return score * self.rep_scale * self.params.reputation_weight_bps // BASIS_POINTS

    def weight(self, balance: int, score: int, active: bool = True) -> int:
        if balance < 0 or score < 0:
            raise ValidationError("Balance and score must be non-negative")
        return self.token_term(balance) + self.reputation_term(score, active)

    def breakdown(self, balance: int, score: int, active: bool = True) -> Dict[str, int]:
        token = self.token_term(balance)
        reputation = self.reputation_term(score, active)
        return {"token_term": token, "reputation_term": reputation, "weight": token + reputation}


@dataclass
class Tally:
    """Per-choice accumulated weight; total == yes + no + abstain"""
    yes_weight: int = 0
    no_weight: int = 0
    abstain_weight: int = 0
    total_weight: int = 0
    vote_count: int = 0

    def record(self, support: Support, weight: int):
        if weight < 0:
            raise ValidationError("Vote weight must be non-negative")
        if support is Support.YES:
            self.yes_weight += weight
        elif support is Support.NO:
            self.no_weight += weight
        elif support is Support.ABSTAIN:
            self.abstain_weight += weight
        else:
            raise ValidationError(f"Unknown support value: {support!r}")
        self.total_weight += weight
        self.vote_count += 1

    def is_consistent(self) -> bool:
        return self.total_weight == self.yes_weight + self.no_weight + self.abstain_weight

    def to_dict(self) -> Dict[str, int]:
        return {
            "yes_weight": self.yes_weight,
            "no_weight": self.no_weight,
            "abstain_weight": self.abstain_weight,
            "total_weight": self.total_weight,
            "vote_count": self.vote_count,
        }
