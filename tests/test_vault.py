"""Unit tests for the credential vault."""

import pytest

from sharepilot.core.exceptions import ConfigurationError, DecryptionError
from sharepilot.core.vault import Vault, get_vault, init_vault


class TestVault:
    """Test AES-GCM field encryption."""

    def test_encrypt_decrypt_roundtrip(self, vault):
        """Test that decrypt(encrypt(p)) == p."""
        encrypted = vault.encrypt("s3cr3t")

        assert encrypted != "s3cr3t"
        assert vault.decrypt(encrypted) == "s3cr3t"

    def test_unicode_and_empty_text_roundtrip(self, vault):
        for plaintext in ["", "पासवर्ड", "a:b:c"]:
            assert vault.decrypt(vault.encrypt(plaintext)) == plaintext

    def test_encrypted_data_is_different_each_time(self, vault):
        """Test that the same plaintext produces different ciphertexts (random nonce)."""
        encrypted1 = vault.encrypt("same_text")
        encrypted2 = vault.encrypt("same_text")

        assert encrypted1 != encrypted2
        assert vault.decrypt(encrypted1) == vault.decrypt(encrypted2) == "same_text"

    def test_field_format_is_nonce_and_ciphertext_hex(self, vault):
        nonce_hex, body_hex = vault.encrypt("mypin").split(":")

        assert len(nonce_hex) == 24
        bytes.fromhex(body_hex)

    def test_different_keys_cannot_decrypt(self):
        """Test that a wrong key fails loudly instead of returning garbage."""
        encrypted = Vault.from_seed("right-key").encrypt("s3cr3t")

        with pytest.raises(DecryptionError, match="wrong key or tampered"):
            Vault.from_seed("wrong").decrypt(encrypted)

    def test_tampered_data_raises_error(self, vault):
        encrypted = vault.encrypt("s3cr3t")
        last = encrypted[-1]
        tampered = encrypted[:-1] + ("0" if last != "0" else "1")

        with pytest.raises(DecryptionError):
            vault.decrypt(tampered)

    @pytest.mark.parametrize(
        "field",
        [
            "no-delimiter",
            "aa:bb:cc",
            "zz:00",
            "abcd:00112233445566778899aabbccddeeff",
        ],
    )
    def test_malformed_fields_raise_error(self, vault, field):
        with pytest.raises(DecryptionError):
            vault.decrypt(field)

    def test_non_string_field_raises_error(self, vault):
        with pytest.raises(DecryptionError):
            vault.decrypt(None)

    def test_same_seed_derives_same_key(self):
        encrypted = Vault.from_seed("seed").encrypt("value")

        assert Vault.from_seed("seed").decrypt(encrypted) == "value"
        assert Vault.from_seed("seed").fingerprint() == Vault.from_seed("seed").fingerprint()

    def test_empty_seed_is_rejected(self):
        with pytest.raises(ConfigurationError):
            Vault.from_seed("")
        with pytest.raises(ConfigurationError):
            Vault.from_seed(None)

    def test_key_must_be_32_bytes(self):
        with pytest.raises(ConfigurationError):
            Vault(b"short")

    def test_repr_hides_key(self, vault):
        assert "hidden" in repr(vault)


class TestProcessVault:
    """Test the process-wide vault lifecycle."""

    def test_get_before_init_raises(self):
        with pytest.raises(ConfigurationError, match="not initialized"):
            get_vault()

    def test_init_then_get(self):
        created = init_vault("process-seed")

        assert get_vault() is created

    def test_init_with_same_seed_is_idempotent(self):
        first = init_vault("process-seed")

        assert init_vault("process-seed") is first

    def test_init_with_different_seed_is_refused(self):
        init_vault("process-seed")

        with pytest.raises(ConfigurationError, match="different seed"):
            init_vault("another-seed")

    def test_init_without_seed_fails(self):
        with pytest.raises(ConfigurationError):
            init_vault(None)
