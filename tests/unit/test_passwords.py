"""Tests for bcrypt password hashing."""

from dancing_pony.auth.passwords import hash_password, verify_password


class TestPasswords:
    def test_hash_is_not_plaintext(self) -> None:
        hashed = hash_password("second-breakfast")
        assert hashed != "second-breakfast"
        assert hashed.startswith("$2")

    def test_verify_correct_password(self) -> None:
        assert verify_password("elevenses", hash_password("elevenses")) is True

    def test_verify_wrong_password(self) -> None:
        assert verify_password("luncheon", hash_password("elevenses")) is False

    def test_salted(self) -> None:
        """Same password hashes differently each time."""
        assert hash_password("supper") != hash_password("supper")

    def test_malformed_hash_is_a_mismatch(self) -> None:
        assert verify_password("supper", "not-a-bcrypt-hash") is False
