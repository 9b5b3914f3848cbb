"""
Tests for configuration helpers and pure functions.
"""

import pytest

from skillproof.config import Config
from skillproof.services.decay import apply_multiplier, decay_multiplier_bps
from skillproof.utils.addresses import normalize_address, normalize_domains
from skillproof.utils.exceptions import InvalidAddressError, SkillProofException


def test_async_database_url():
    assert Config.get_async_database_url("sqlite:///scores.db") == "sqlite+aiosqlite:///scores.db"
    assert Config.get_async_database_url("sqlite+aiosqlite:///:memory:") == "sqlite+aiosqlite:///:memory:"


def test_validate_rejects_out_of_range_decay(monkeypatch):
    Config.validate()
    monkeypatch.setattr(Config, "DECAY_RATE_PER_DAY_BPS", 1001)
    with pytest.raises(ValueError):
        Config.validate()


def test_decay_multiplier():
    assert decay_multiplier_bps(0, 100, 5000) == 10000
    assert decay_multiplier_bps(30, 100, 5000) == 7000
    assert decay_multiplier_bps(100, 100, 5000) == 5000
    assert decay_multiplier_bps(1000, 1000, 0) == 0
    assert apply_multiplier(1847, 9000) == 1662


def test_addresses():
    assert normalize_address(" 0xABC ") == "0xabc"
    for bad in ("", "   ", None, 42):
        with pytest.raises(InvalidAddressError):
            normalize_address(bad)
    assert normalize_domains([" chess", "go", "chess", ""]) == ["chess", "go"]


def test_exceptions_carry_user_message():
    error = InvalidAddressError("")
    assert isinstance(error, SkillProofException)
    assert error.user_message == "Address must be a non-empty string"
