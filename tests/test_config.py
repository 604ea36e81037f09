"""Tests for configuration loading."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from ratify.algorithms import DigestAlgorithm
from ratify.config import RatifyConfig, config_file_path, get_config


def write_config(home: Path, content: str) -> Path:
    path = home / ".config" / "ratify.toml"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


def test_config_file_path(config_home: Path):
    assert config_file_path() == config_home / ".config" / "ratify.toml"


def test_defaults():
    config = get_config()
    assert config.default_sign_algo is None
    assert config.catalog_file is None
    assert config.worker_pool_size >= 2
    assert config.follow_symlinks is False
    assert config.include_hidden is False


def test_config_file(config_home: Path):
    write_config(config_home, 'default_sign_algo = "blake3"\nworker_pool_size = 3\n')
    config = get_config()
    assert config.default_sign_algo == DigestAlgorithm.BLAKE3
    assert config.worker_pool_size == 3


def test_env_overrides_config_file(config_home: Path, monkeypatch):
    write_config(config_home, 'default_sign_algo = "blake3"\n')
    monkeypatch.setenv("RATIFY_DEFAULT_SIGN_ALGO", "sha512")
    monkeypatch.setenv("RATIFY_FOLLOW_SYMLINKS", "true")
    config = get_config()
    assert config.default_sign_algo == DigestAlgorithm.SHA512
    assert config.follow_symlinks is True


def test_overrides_win_and_none_is_ignored(config_home: Path):
    write_config(config_home, 'default_sign_algo = "blake3"\n')
    config = get_config(default_sign_algo=DigestAlgorithm.MD5, catalog_file=None)
    assert config.default_sign_algo == DigestAlgorithm.MD5
    assert config.catalog_file is None


def test_invalid_values(config_home: Path):
    with pytest.raises(ValidationError):
        RatifyConfig(worker_pool_size=0)

    write_config(config_home, 'default_sign_algo = "crc32"\n')
    with pytest.raises(ValidationError):
        get_config()
