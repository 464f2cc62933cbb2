"""Unit tests for indexer settings."""

import pytest
from pydantic import ValidationError

from indexer.config.settings import Settings

ADDRESS = "0x" + "Ab" * 20


def make_settings(**kwargs) -> Settings:
    return Settings(_env_file=None, **kwargs)


class TestContractAddresses:
    """Tests for contract address validation."""

    def test_address_lowercased(self):
        settings = make_settings(launchpad_address=ADDRESS)
        assert settings.launchpad_address == ADDRESS.lower()

    @pytest.mark.parametrize("value", ["", "   "])
    def test_blank_address_is_unset(self, value):
        assert make_settings(farm_address=value).farm_address is None

    @pytest.mark.parametrize(
        "value",
        [
            "1234567890123456789012345678901234567890ab",
            "0x1234",
            "0x" + "z" * 40,
        ],
    )
    def test_invalid_address_rejected(self, value):
        with pytest.raises(ValidationError):
            make_settings(leaderboard_address=value)

    def test_contract_addresses_mapping(self):
        settings = make_settings(
            launchpad_address=ADDRESS,
            farm_address=None,
            leaderboard_address="",
        )

        assert settings.contract_addresses() == {
            "launchpad": ADDRESS.lower(),
            "farm": None,
            "leaderboard": None,
        }


class TestEnvironment:
    """Tests for loading from environment variables."""

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("FARM_ADDRESS", ADDRESS)
        monkeypatch.setenv("POLL_INTERVAL", "2.5")
        monkeypatch.setenv("FARM_EXACT_TOTALS", "true")
        monkeypatch.setenv("STORE_BACKEND", "memory")

        settings = make_settings()

        assert settings.farm_address == ADDRESS.lower()
        assert settings.poll_interval == 2.5
        assert settings.farm_exact_totals is True
        assert settings.store_backend == "memory"

    def test_log_level_normalized(self):
        assert make_settings(log_level="debug").log_level == "DEBUG"

    def test_unknown_store_backend_rejected(self):
        with pytest.raises(ValidationError):
            make_settings(store_backend="postgres")

    def test_poll_interval_must_be_positive(self):
        with pytest.raises(ValidationError):
            make_settings(poll_interval=0)

    def test_max_block_range_must_be_positive(self):
        with pytest.raises(ValidationError):
            make_settings(max_block_range=0)
