"""
Per-tenant protection of sensitive fields.

Fernet (AES-128-CBC + HMAC-SHA256) with a key derived per tenant from one
master key via HKDF. A token produced for one tenant does not decrypt under
another tenant's key, so a leaked ciphertext stays useless across tenants.
"""
from __future__ import annotations

import base64
import hashlib
import hmac
import secrets
from typing import Any, Dict, Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from src.shared.exceptions import CryptoError
from src.shared.logging import get_logger
from src.shared.utils.serialization import dumps

logger = get_logger(__name__)

_HKDF_SALT = b"farm-tenancy/field-encryption/v1"


class TenantDataSecurity:
    """
    Encrypts and decrypts sensitive strings under a tenant-specific key.

    Attributes:
        master_key: Base64-encoded 32-byte master key (from secure storage in prod)
    """

    def __init__(self, master_key: Optional[str] = None) -> None:
        if master_key is None:
            master_key = base64.urlsafe_b64encode(secrets.token_bytes(32)).decode()
            logger.warning(
                "Using generated master key (NOT SECURE FOR PRODUCTION)",
                action="set TENANCY_DATA_ENCRYPTION_KEY",
            )
        try:
            raw = base64.urlsafe_b64decode(master_key.encode())
        except (ValueError, TypeError) as e:
            raise CryptoError("Master key is not valid base64") from e
        if len(raw) < 32:
            raise CryptoError("Master key must decode to at least 32 bytes")
        self._master = raw
        self._ciphers: Dict[str, Fernet] = {}

    def _cipher(self, tenant_id: str) -> Fernet:
        if not tenant_id:
            raise CryptoError("tenant_id is required for field encryption")
        cipher = self._ciphers.get(tenant_id)
        if cipher is None:
            derived = HKDF(
                algorithm=hashes.SHA256(),
                length=32,
                salt=_HKDF_SALT,
                info=tenant_id.encode("utf-8"),
            ).derive(self._master)
            cipher = Fernet(base64.urlsafe_b64encode(derived))
            self._ciphers[tenant_id] = cipher
        return cipher

    def encrypt_sensitive_data(self, data: str | bytes, tenant_id: str) -> str:
        """
        Encrypt plaintext for one tenant.

        Returns:
            Fernet token (URL-safe base64 text)
        """
        if isinstance(data, str):
            data = data.encode("utf-8")
        return self._cipher(tenant_id).encrypt(data).decode("ascii")

    def decrypt_sensitive_data(self, token: str, tenant_id: str) -> str:
        """
        Decrypt a token produced for `tenant_id`.

        Raises:
            CryptoError: token tampered with, malformed, or issued for another tenant
        """
        try:
            plaintext = self._cipher(tenant_id).decrypt(token.encode("ascii"))
        except (InvalidToken, UnicodeEncodeError) as e:
            logger.warning("Decryption failed", tenant_id=tenant_id)
            raise CryptoError("Unable to decrypt data for this tenant") from e
        return plaintext.decode("utf-8")

    @staticmethod
    def checksum(data: Any) -> str:
        """SHA-256 over the canonical JSON form of `data`."""
        return hashlib.sha256(dumps(data, canonical=True).encode("utf-8")).hexdigest()

    @classmethod
    def validate_data_integrity(cls, data: Any, checksum: Optional[str] = None) -> bool:
        """True when `data` still matches `checksum`; with no checksum there is nothing to compare."""
        if checksum is None:
            return True
        return hmac.compare_digest(cls.checksum(data), checksum)
