from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

DEFAULT_CONFIG_PATH = Path("config.yaml")


@dataclass
class MerkleConfig:
    depth: int = 20
    epoch: int = 0


@dataclass
class WeightConfig:
    token_weight_bps: int = 7000
    reputation_weight_bps: int = 3000
    rep_scale: int = 10 ** 18


@dataclass
class VotingConfig:
    voting_delay: int = 3600
    voting_period: int = 7 * 24 * 3600
    proposal_threshold: int = 1000 * 10 ** 18
    quorum_percentage: int = 40
    quorum_basis: str = "registered_weight"
    private_vote_weight: int = 1


@dataclass
class ZKConfig:
    verifier_backend: str = "witness"
    snarkjs_binary: str = "snarkjs"
    verification_key: Optional[Path] = None
    wasm_file: Optional[Path] = None
    zkey_file: Optional[Path] = None
    proof_timeout: int = 60

    def __post_init__(self):
        for name in ("verification_key", "wasm_file", "zkey_file"):
            value = getattr(self, name)
            if value is not None:
                setattr(self, name, Path(value))


@dataclass
class SystemConfig:
    merkle_config: MerkleConfig = field(default_factory=MerkleConfig)
    weight_config: WeightConfig = field(default_factory=WeightConfig)
    voting_config: VotingConfig = field(default_factory=VotingConfig)
    zk_config: ZKConfig = field(default_factory=ZKConfig)

    log_dir: Path = field(default_factory=lambda: Path("logs"))
    results_dir: Path = field(default_factory=lambda: Path("results"))
    log_level: str = "INFO"
    enable_benchmarking: bool = True

    def __post_init__(self):
        self.log_dir = Path(self.log_dir)
        self.results_dir = Path(self.results_dir)


def _section(config_data: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = config_data.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"Config section '{name}' must be a mapping")
    return section


def load_config(config_path: Optional[Path] = None) -> SystemConfig:
    """Load configuration from a YAML file, or defaults when it does not exist"""
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH
    config_path = Path(config_path)

    if not config_path.exists():
        return SystemConfig()

    with open(config_path, 'r') as f:
        try:
            config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Malformed config file {config_path}: {e}") from e

    if not isinstance(config_data, dict):
        raise ValueError(f"Config file {config_path} must contain a mapping")

    try:
        merkle_config = MerkleConfig(**_section(config_data, 'merkle'))
        weight_config = WeightConfig(**_section(config_data, 'weights'))
        voting_config = VotingConfig(**_section(config_data, 'voting'))
        zk_config = ZKConfig(**_section(config_data, 'zk_proofs'))
    except TypeError as e:
        raise ValueError(f"Unknown key in config file {config_path}: {e}") from e

    return SystemConfig(
        merkle_config=merkle_config,
        weight_config=weight_config,
        voting_config=voting_config,
        zk_config=zk_config,
        log_dir=Path(config_data.get('log_dir', 'logs')),
        results_dir=Path(config_data.get('results_dir', 'results')),
        log_level=config_data.get('log_level', 'INFO'),
        enable_benchmarking=config_data.get('enable_benchmarking', True),
    )


def save_config(config: SystemConfig, config_path: Optional[Path] = None):
    """Save configuration to YAML file"""
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH
    config_path = Path(config_path)

    zk = config.zk_config
    config_data = {
        'merkle': {
            'depth': config.merkle_config.depth,
            'epoch': config.merkle_config.epoch,
        },
        'weights': {
            'token_weight_bps': config.weight_config.token_weight_bps,
            'reputation_weight_bps': config.weight_config.reputation_weight_bps,
            'rep_scale': config.weight_config.rep_scale,
        },
        'voting': {
            'voting_delay': config.voting_config.voting_delay,
            'voting_period': config.voting_config.voting_period,
            'proposal_threshold': config.voting_config.proposal_threshold,
            'quorum_percentage': config.voting_config.quorum_percentage,
            'quorum_basis': config.voting_config.quorum_basis,
            'private_vote_weight': config.voting_config.private_vote_weight,
        },
        'zk_proofs': {
            'verifier_backend': zk.verifier_backend,
            'snarkjs_binary': zk.snarkjs_binary,
            'verification_key': None if zk.verification_key is None else str(zk.verification_key),
            'wasm_file': None if zk.wasm_file is None else str(zk.wasm_file),
            'zkey_file': None if zk.zkey_file is None else str(zk.zkey_file),
            'proof_timeout': zk.proof_timeout,
        },
        'log_dir': str(config.log_dir),
        'results_dir': str(config.results_dir),
        'log_level': config.log_level,
        'enable_benchmarking': config.enable_benchmarking,
    }

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, 'w') as f:
        yaml.dump(config_data, f, default_flow_style=False)
