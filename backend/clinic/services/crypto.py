from __future__ import annotations
import base64
import hashlib
import hmac
from dataclasses import dataclass
from nacl.secret import SecretBox
from nacl.utils import random as nacl_random
from clinic.core.settings import settings


@dataclass(frozen=True)
class SealedEmail:
    lookup: str
    ciphertext: bytes
    nonce: bytes


class FieldCrypto:
    """Personal fields at rest: SecretBox ciphertext with its nonce, plus a peppered HMAC for lookups."""

    def __init__(self, key_b64: str, lookup_pepper: str) -> None:
        key = base64.b64decode(key_b64)
        if len(key) != SecretBox.KEY_SIZE:
            raise ValueError("CONTENT_ENC_KEY_B64 must decode to 32 bytes")
        self._box = SecretBox(key)
        self._pepper = lookup_pepper.encode("utf-8")

    def encrypt_text(self, text: str) -> tuple[bytes, bytes]:
        nonce = nacl_random(SecretBox.NONCE_SIZE)
        return self._box.encrypt(text.encode("utf-8"), nonce).ciphertext, nonce

    def decrypt_text(self, ciphertext: bytes, nonce: bytes) -> str:
        return self._box.decrypt(ciphertext, nonce).decode("utf-8")

    def email_lookup(self, email: str) -> str:
        norm = email.strip().lower().encode("utf-8")
        return hmac.new(self._pepper, norm, hashlib.sha256).hexdigest()

    def seal_email(self, email: str) -> SealedEmail:
        ct, nonce = self.encrypt_text(email.strip())
        return SealedEmail(lookup=self.email_lookup(email), ciphertext=ct, nonce=nonce)

    def open_email(self, user) -> str:
        return self.decrypt_text(user.email_ciphertext, user.email_nonce)


crypto = FieldCrypto(settings.content_enc_key_b64, settings.email_lookup_pepper)
