"""Tests for engine configuration loading and validation."""

import json
from datetime import timedelta
from pathlib import Path

import pytest

from hedgeswap.config import SwapEngineConfig
from hedgeswap.models.swap import RedeemerRole

CONFIG_DIR = Path(__file__).resolve().parents[1] / "config"


class TestDefaults:
    def test_default_policy(self) -> None:
        config = SwapEngineConfig.default()
        assert config.hash_algorithm == "sha256"
        assert config.redeemer_role == RedeemerRole.PREMIUM_ESCROWER
        assert config.min_delta == timedelta(seconds=1)
        assert config.max_delta == timedelta(days=30)


class TestLoading:
    def test_repository_config(self) -> None:
        config = SwapEngineConfig.from_config_dir(CONFIG_DIR)
        assert config.min_delta_seconds == 60
        assert config.native_denomination == "ETH"
        assert config.redeemer_role == RedeemerRole.PREMIUM_ESCROWER

    def test_missing_keys_keep_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "swap_params.json"
        path.write_text(json.dumps({"engine": {"hash_algorithm": "keccak256"}}), encoding="utf-8")
        config = SwapEngineConfig.from_file(path)
        assert config.hash_algorithm == "keccak256"
        assert config.min_delta_seconds == 1

    def test_asset_escrower_role(self, tmp_path: Path) -> None:
        path = tmp_path / "swap_params.json"
        path.write_text(json.dumps({"engine": {"redeemer_role": "asset_escrower"}}), encoding="utf-8")
        assert SwapEngineConfig.from_file(path).redeemer_role == RedeemerRole.ASSET_ESCROWER

    def test_unknown_role_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "swap_params.json"
        path.write_text(json.dumps({"engine": {"redeemer_role": "anyone"}}), encoding="utf-8")
        with pytest.raises(ValueError, match="redeemer_role"):
            SwapEngineConfig.from_file(path)


class TestValidation:
    def test_unknown_hash(self) -> None:
        with pytest.raises(ValueError, match="hash_algorithm"):
            SwapEngineConfig(hash_algorithm="md5")

    def test_non_positive_min_delta(self) -> None:
        with pytest.raises(ValueError, match="min_delta_seconds"):
            SwapEngineConfig(min_delta_seconds=0)

    def test_max_below_min(self) -> None:
        with pytest.raises(ValueError, match="max_delta_seconds"):
            SwapEngineConfig(min_delta_seconds=100, max_delta_seconds=10)

    def test_empty_native_denomination(self) -> None:
        with pytest.raises(ValueError, match="native_denomination"):
            SwapEngineConfig(native_denomination="")
