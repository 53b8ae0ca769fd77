"""
Card detail validation and at-rest encryption.

Cards are validated by shape only and never charged. The encrypted fields
exist purely as a record of what the customer entered at checkout.
"""

from __future__ import annotations

import base64
import hashlib
import logging
import re
from dataclasses import dataclass

from cryptography.fernet import Fernet, InvalidToken

from ..errors import ValidationError

logger = logging.getLogger(__name__)

_SEPARATORS = re.compile(r"[\s-]")


def resolve_card_key(configured_key: str | None, secret_key: str) -> bytes:
    """
    Fernet key from config, or a dev key derived from SECRET_KEY.

    The derived key is stable across restarts so existing records stay
    readable, but it is only as secret as SECRET_KEY.
    """
    if configured_key:
        return configured_key.encode("ascii")
    logger.warning("CARD_ENCRYPTION_KEY is not set; deriving a development key from SECRET_KEY")
    digest = hashlib.sha256(secret_key.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest)


class CardVault:
    def __init__(self, key: bytes):
        self._fernet = Fernet(key)

    def encrypt(self, value: str) -> str:
        return self._fernet.encrypt(value.encode("utf-8")).decode("ascii")

    def decrypt(self, token: str) -> str:
        try:
            return self._fernet.decrypt(token.encode("ascii")).decode("utf-8")
        except InvalidToken as exc:
            raise ValueError("card field cannot be decrypted with the configured key") from exc


@dataclass(frozen=True)
class PaymentDetails:
    card_number: str
    card_holder: str
    expiry_month: str
    expiry_year: str
    cvv: str

    @classmethod
    def from_payload(cls, data: dict | None) -> "PaymentDetails":
        data = data or {}
        return cls(
            card_number=str(data.get("card_number") or ""),
            card_holder=str(data.get("card_holder") or "").strip(),
            expiry_month=str(data.get("expiry_month") or "").strip(),
            expiry_year=str(data.get("expiry_year") or "").strip(),
            cvv=str(data.get("cvv") or "").strip(),
        )

    @property
    def normalized_number(self) -> str:
        return _SEPARATORS.sub("", self.card_number)

    def validate(self) -> None:
        problems = []
        number = self.normalized_number
        if len(number) != 16 or not number.isdigit():
            problems.append("card_number must be 16 digits")
        if len(self.cvv) != 3 or not self.cvv.isdigit():
            problems.append("cvv must be 3 digits")
        if not self.card_holder:
            problems.append("card_holder is required")
        if not self.expiry_month.isdigit() or not 1 <= int(self.expiry_month) <= 12:
            problems.append("expiry_month must be 1-12")
        if not self.expiry_year.isdigit():
            problems.append("expiry_year is required")

        if problems:
            raise ValidationError(
                "Invalid payment details",
                code="invalid_payment_details",
                details={"problems": problems},
            )

    def encrypted_fields(self, vault: CardVault) -> dict:
        number = self.normalized_number
        return {
            "encrypted_card_number": vault.encrypt(number),
            "encrypted_card_holder": vault.encrypt(self.card_holder),
            "encrypted_expiry_month": vault.encrypt(self.expiry_month),
            "encrypted_expiry_year": vault.encrypt(self.expiry_year),
            "encrypted_cvv": vault.encrypt(self.cvv),
            "card_last4": number[-4:],
        }
