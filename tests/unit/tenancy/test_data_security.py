import base64

import pytest

from src.shared.exceptions import CryptoError
from src.tenancy.infrastructure.data_security import TenantDataSecurity

MASTER_KEY = base64.urlsafe_b64encode(b"k" * 32).decode()


def test_round_trip_per_tenant():
    sec = TenantDataSecurity(MASTER_KEY)
    token = sec.encrypt_sensitive_data("vet notes: lame left hind", "farm-a")
    assert "lame" not in token
    assert sec.decrypt_sensitive_data(token, "farm-a") == "vet notes: lame left hind"


def test_other_tenant_cannot_decrypt():
    sec = TenantDataSecurity(MASTER_KEY)
    token = sec.encrypt_sensitive_data("bank account 123", "farm-a")
    with pytest.raises(CryptoError):
        sec.decrypt_sensitive_data(token, "farm-b")


def test_tampered_token_rejected():
    sec = TenantDataSecurity(MASTER_KEY)
    token = sec.encrypt_sensitive_data("secret", "farm-a")
    tampered = token[:-4] + ("AAAA" if not token.endswith("AAAA") else "BBBB")
    with pytest.raises(CryptoError):
        sec.decrypt_sensitive_data(tampered, "farm-a")


def test_same_master_key_decrypts_across_instances():
    token = TenantDataSecurity(MASTER_KEY).encrypt_sensitive_data("x", "farm-a")
    assert TenantDataSecurity(MASTER_KEY).decrypt_sensitive_data(token, "farm-a") == "x"


def test_bad_master_key():
    with pytest.raises(CryptoError):
        TenantDataSecurity(base64.urlsafe_b64encode(b"short").decode())
    with pytest.raises(CryptoError):
        TenantDataSecurity("not base64!!")


def test_generated_key_when_unset():
    sec = TenantDataSecurity()
    assert sec.decrypt_sensitive_data(sec.encrypt_sensitive_data("x", "farm-a"), "farm-a") == "x"


def test_missing_tenant_rejected():
    with pytest.raises(CryptoError):
        TenantDataSecurity(MASTER_KEY).encrypt_sensitive_data("x", "")


def test_integrity_checksum():
    record = {"b": 2, "a": [1, 2]}
    checksum = TenantDataSecurity.checksum(record)
    assert checksum == TenantDataSecurity.checksum({"a": [1, 2], "b": 2})
    assert TenantDataSecurity.validate_data_integrity(record, checksum)
    assert not TenantDataSecurity.validate_data_integrity({"a": [1, 2], "b": 3}, checksum)
    assert TenantDataSecurity.validate_data_integrity(record)
