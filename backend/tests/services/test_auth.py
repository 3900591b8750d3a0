import pytest

from clinic.services.auth import (
    InvalidToken,
    create_access_token,
    decode_token,
    hash_password,
    verify_password,
)
from clinic.services.crypto import crypto


def test_token_carries_user_role_and_session():
    token = create_access_token(42, "NURSE", "session-1")

    claims = decode_token(token)

    assert claims.user_id == 42
    assert claims.role == "NURSE"
    assert claims.session_id == "session-1"


def test_each_login_gets_its_own_session():
    first = decode_token(create_access_token(1, "DOCTOR"))
    second = decode_token(create_access_token(1, "DOCTOR"))

    assert first.session_id != second.session_id


def test_tampered_token_is_rejected():
    header, payload, _ = create_access_token(1, "DOCTOR").split(".")
    foreign_signature = create_access_token(2, "ADMIN").split(".")[2]

    with pytest.raises(InvalidToken):
        decode_token(f"{header}.{payload}.{foreign_signature}")


def test_password_hash_round_trip():
    hashed = hash_password("password123")

    assert verify_password("password123", hashed)
    assert not verify_password("password124", hashed)


def test_sealed_email_is_looked_up_case_insensitively():
    sealed = crypto.seal_email("  Alice@Clinic.Test ")

    assert sealed.lookup == crypto.email_lookup("alice@clinic.test")
    assert crypto.decrypt_text(sealed.ciphertext, sealed.nonce) == "Alice@Clinic.Test"
