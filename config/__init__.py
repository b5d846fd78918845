"""Configuration management for the governance voting system."""

from .config import (
    MerkleConfig,
    SystemConfig,
    VotingConfig,
    WeightConfig,
    ZKConfig,
    load_config,
    save_config,
)

__all__ = ['SystemConfig', 'MerkleConfig', 'WeightConfig', 'VotingConfig',
           'ZKConfig', 'load_config', 'save_config']
