"""Tests for Argon2 password hashing."""
import pytest

from core.config import Environment, Settings
from core.hashing import Argon2PasswordHasher, InvalidHashError


class TestArgon2PasswordHasher:
    """Tests for hash and verify."""

    def test__hash__is_not_plaintext_and_is_salted(self, hasher: Argon2PasswordHasher) -> None:
        """Hashing the same password twice yields different argon2id strings."""
        first = hasher.hash("correct horse")
        second = hasher.hash("correct horse")

        assert first != "correct horse"
        assert first.startswith("$argon2id$")
        assert first != second

    def test__verify__true_on_match(self, hasher: Argon2PasswordHasher) -> None:
        hashed = hasher.hash("correct horse")
        assert hasher.verify("correct horse", hashed) is True

    def test__verify__false_on_mismatch(self, hasher: Argon2PasswordHasher) -> None:
        hashed = hasher.hash("correct horse")
        assert hasher.verify("wrong horse", hashed) is False

    def test__verify__malformed_hash_raises(self, hasher: Argon2PasswordHasher) -> None:
        """A hash that cannot be parsed is a data error, not a wrong password."""
        with pytest.raises(InvalidHashError):
            hasher.verify("anything", "not-a-hash")

    async def test__async_variants__match_sync_behavior(
        self, hasher: Argon2PasswordHasher,
    ) -> None:
        hashed = await hasher.hash_async("correct horse")

        assert await hasher.verify_async("correct horse", hashed) is True
        assert await hasher.verify_async("wrong horse", hashed) is False


class TestCostParameters:
    """Tests for parameters sourced from settings."""

    def test__from_settings__uses_configured_costs(self) -> None:
        settings = Settings(
            _env_file=None,
            environment=Environment.TEST,
            argon2_memory_cost=2048,
            argon2_time_cost=3,
            argon2_parallelism=1,
        )
        hashed = Argon2PasswordHasher.from_settings(settings).hash("password123")

        assert "m=2048,t=3,p=1" in hashed

    def test__needs_rehash__detects_parameter_drift(self) -> None:
        """Hashes made with older costs are flagged for rehashing."""
        old = Argon2PasswordHasher(memory_cost=1024, time_cost=1)
        new = Argon2PasswordHasher(memory_cost=2048, time_cost=1)
        hashed = old.hash("password123")

        assert old.needs_rehash(hashed) is False
        assert new.needs_rehash(hashed) is True
