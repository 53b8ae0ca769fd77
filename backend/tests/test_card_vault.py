"""Card validation and encryption tests."""

import pytest
from cryptography.fernet import Fernet

from techstore.errors import ValidationError
from techstore.services.card_vault import CardVault, PaymentDetails, resolve_card_key


def test_round_trip_and_ciphertext_differs():
    vault = CardVault(Fernet.generate_key())
    token = vault.encrypt("4242424242424242")
    assert token != "4242424242424242"
    assert vault.decrypt(token) == "4242424242424242"


def test_wrong_key_cannot_decrypt():
    token = CardVault(Fernet.generate_key()).encrypt("secret")
    with pytest.raises(ValueError):
        CardVault(Fernet.generate_key()).decrypt(token)


def test_derived_key_is_stable():
    assert resolve_card_key(None, "s3cret") == resolve_card_key(None, "s3cret")
    assert resolve_card_key(None, "s3cret") != resolve_card_key(None, "other")
    CardVault(resolve_card_key(None, "s3cret"))


def test_configured_key_wins():
    key = Fernet.generate_key().decode("ascii")
    assert resolve_card_key(key, "ignored") == key.encode("ascii")


def test_validate_collects_every_problem():
    details = PaymentDetails.from_payload({"card_number": "123", "cvv": "abcd", "expiry_month": "0"})
    with pytest.raises(ValidationError) as exc:
        details.validate()
    assert len(exc.value.details["problems"]) == 5


def test_encrypted_fields_keep_only_last4_in_clear():
    vault = CardVault(Fernet.generate_key())
    details = PaymentDetails.from_payload({
        "card_number": "5555 4444 3333 1111",
        "card_holder": "Katherine Johnson",
        "expiry_month": "09",
        "expiry_year": "2028",
        "cvv": "777",
    })
    details.validate()

    fields = details.encrypted_fields(vault)
    assert fields["card_last4"] == "1111"
    assert vault.decrypt(fields["encrypted_card_number"]) == "5555444433331111"
    assert vault.decrypt(fields["encrypted_card_holder"]) == "Katherine Johnson"
