"""Tests for YAML configuration loading"""

from pathlib import Path

import pytest

from config.config import SystemConfig, ZKConfig, load_config, save_config


def test_missing_file_gives_defaults(tmp_path):
    config = load_config(tmp_path / "absent.yaml")
    assert config == SystemConfig()
    assert config.merkle_config.depth == 20
    assert config.weight_config.rep_scale == 10 ** 18
    assert config.voting_config.quorum_basis == "registered_weight"
    assert config.zk_config.verifier_backend == "witness"


def test_partial_sections(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "merkle:\n"
        "  depth: 8\n"
        "voting:\n"
        "  quorum_percentage: 25\n"
        "  quorum_basis: total_supply\n"
        "zk_proofs:\n"
        "  verifier_backend: snarkjs\n"
        "  verification_key: build/verification_key.json\n"
        "log_level: DEBUG\n"
    )
    config = load_config(path)
    assert config.merkle_config.depth == 8
    assert config.merkle_config.epoch == 0
    assert config.voting_config.quorum_percentage == 25
    assert config.voting_config.voting_period == 7 * 24 * 3600
    assert config.zk_config.verification_key == Path("build/verification_key.json")
    assert config.log_level == "DEBUG"


def test_save_then_load(tmp_path):
    config = SystemConfig(zk_config=ZKConfig(wasm_file="vote.wasm", zkey_file="vote.zkey"))
    config.weight_config.token_weight_bps = 6000
    config.weight_config.reputation_weight_bps = 4000
    path = tmp_path / "nested" / "config.yaml"

    save_config(config, path)
    loaded = load_config(path)
    assert loaded.weight_config.token_weight_bps == 6000
    assert loaded.zk_config.wasm_file == Path("vote.wasm")
    assert loaded.voting_config == config.voting_config


def test_malformed_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("merkle: [depth: 4\n")
    with pytest.raises(ValueError, match="Malformed"):
        load_config(path)


def test_non_mapping(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("- just\n- a list\n")
    with pytest.raises(ValueError, match="mapping"):
        load_config(path)


def test_section_must_be_mapping(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("weights: 7000\n")
    with pytest.raises(ValueError, match="weights"):
        load_config(path)


def test_unknown_key(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("merkle:\n  height: 4\n")
    with pytest.raises(ValueError, match="Unknown key"):
        load_config(path)
