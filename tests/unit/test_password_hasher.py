"""Unit tests for bcrypt PasswordHasher."""

import pytest

from account_service.services.password_hasher import PasswordHasher


@pytest.fixture
def password_hasher():
    return PasswordHasher(rounds=4)


class TestPasswordHashing:
    """Tests for hash / verify."""

    def test_hash_returns_bcrypt_string(self, password_hasher):
        hashed = password_hasher.hash("my-secret-pw")
        assert hashed.startswith("$2b$") or hashed.startswith("$2a$")
        assert len(hashed) == 60

    def test_hash_uses_configured_rounds(self, password_hasher):
        assert password_hasher.hash("pw").split("$")[2] == "04"

    def test_default_work_factor(self):
        assert PasswordHasher().rounds == 10

    def test_hash_different_salts(self, password_hasher):
        h1 = password_hasher.hash("same-password")
        h2 = password_hasher.hash("same-password")
        assert h1 != h2, "Each call should produce a unique salt"

    def test_hash_is_not_plaintext(self, password_hasher):
        assert password_hasher.hash("p@ss1") != "p@ss1"

    def test_verify_correct(self, password_hasher):
        hashed = password_hasher.hash("correct-horse-battery")
        assert password_hasher.verify("correct-horse-battery", hashed) is True

    def test_verify_wrong(self, password_hasher):
        hashed = password_hasher.hash("right-password")
        assert password_hasher.verify("wrong-password", hashed) is False

    def test_verify_malformed_digest_is_false(self, password_hasher):
        assert password_hasher.verify("anything", "not-a-bcrypt-hash") is False
