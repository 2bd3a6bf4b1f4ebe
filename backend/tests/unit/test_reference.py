"""Unit tests for payment reference derivation and validation."""
from datetime import datetime, timedelta, timezone

import pytest

from ipspay.errors import ReferenceTooLongError
from ipspay.models.payment_intent import PaymentPurpose
from ipspay.services.reference import (
    PURPOSE_TAGS,
    check_digits,
    derive_reference,
    encode_timestamp,
    matches,
    parse_reference,
    payer_slice,
    to_wire,
    verify_reference,
)

CREATED_AT = datetime(2026, 1, 15, 10, 30, 0, 123456)


def test_check_digits_known_values() -> None:
    """MOD 97-10 digits for short bodies, letters counted as 10..35."""
    assert check_digits("1") == "95"
    assert check_digits("A") == "68"
    assert verify_reference("951")
    assert verify_reference("68A")


def test_reference_layout() -> None:
    """Reference is check digits, purpose tag, 11-char timestamp, payer slice."""
    reference = derive_reference("abc-123-x", PaymentPurpose.CONTACT_REVEAL, CREATED_AT)

    assert reference[:2].isdigit()
    assert reference[2] == PURPOSE_TAGS[PaymentPurpose.CONTACT_REVEAL] == "3"
    assert reference[3:14] == encode_timestamp(CREATED_AT)
    assert reference.endswith("ABC1")
    assert len(reference) == 18
    assert verify_reference(reference)


def test_reference_is_deterministic() -> None:
    first = derive_reference("u1", PaymentPurpose.TOPUP, CREATED_AT)
    second = derive_reference("u1", PaymentPurpose.TOPUP, CREATED_AT)

    assert first == second


def test_references_one_microsecond_apart_differ() -> None:
    """Same payer and purpose at different instants never share a reference."""
    first = derive_reference("u1", PaymentPurpose.CONTACT_REVEAL, CREATED_AT)
    second = derive_reference("u1", PaymentPurpose.CONTACT_REVEAL, CREATED_AT + timedelta(microseconds=1))

    assert first != second


def test_references_differ_by_purpose_and_payer() -> None:
    base = derive_reference("u1", PaymentPurpose.CONTACT_REVEAL, CREATED_AT)

    assert derive_reference("u1", PaymentPurpose.URGENT_LISTING, CREATED_AT) != base
    assert derive_reference("u2", PaymentPurpose.CONTACT_REVEAL, CREATED_AT) != base


def test_timezone_aware_time_matches_naive_utc() -> None:
    aware = CREATED_AT.replace(tzinfo=timezone.utc)

    assert derive_reference("u1", PaymentPurpose.TOPUP, aware) == derive_reference(
        "u1", PaymentPurpose.TOPUP, CREATED_AT
    )


def test_encode_timestamp_is_fixed_width_base36() -> None:
    assert encode_timestamp(datetime(1970, 1, 1) + timedelta(microseconds=36)) == "00000000010"
    assert len(encode_timestamp(CREATED_AT)) == 11


def test_encode_timestamp_rejects_pre_epoch() -> None:
    with pytest.raises(ValueError, match="epoch"):
        encode_timestamp(datetime(1969, 12, 31))


def test_payer_slice_strips_separators() -> None:
    assert payer_slice("abc-123-x") == "ABC1"
    assert payer_slice("u1") == "U1"


def test_payer_slice_requires_alphanumerics() -> None:
    with pytest.raises(ValueError, match="alphanumeric"):
        payer_slice("---")


def test_verify_reference_detects_typos() -> None:
    reference = derive_reference("u1", PaymentPurpose.CONTACT_REVEAL, CREATED_AT)

    wrong_check = f"{(int(reference[:2]) + 1) % 100:02d}" + reference[2:]
    wrong_purpose = reference[:2] + "4" + reference[3:]

    assert not verify_reference(wrong_check)
    assert not verify_reference(wrong_purpose)


def test_verify_reference_accepts_case_and_whitespace() -> None:
    reference = derive_reference("u1", PaymentPurpose.CONTACT_REVEAL, CREATED_AT)

    assert verify_reference(f"  {reference.lower()} ")


@pytest.mark.parametrize("value", ["", "1", "ab123", "95-1", "97 12"])
def test_verify_reference_rejects_malformed(value: str) -> None:
    assert not verify_reference(value)


def test_parse_reference_recovers_fields() -> None:
    reference = derive_reference("abc-123-x", PaymentPurpose.PRIORITY_LISTING, CREATED_AT)

    parts = parse_reference(reference)

    assert parts.purpose == PaymentPurpose.PRIORITY_LISTING
    assert parts.created_at == CREATED_AT
    assert parts.payer_slice == "ABC1"


def test_parse_reference_rejects_bad_check_digits() -> None:
    reference = derive_reference("u1", PaymentPurpose.TOPUP, CREATED_AT)

    with pytest.raises(ValueError, match="Invalid reference"):
        parse_reference("00" + reference[2:])


def test_matches_audits_reference_against_triple() -> None:
    reference = derive_reference("u1", PaymentPurpose.SUBSCRIPTION, CREATED_AT)

    assert matches(reference, "u1", PaymentPurpose.SUBSCRIPTION, CREATED_AT)
    assert not matches(reference, "u1", PaymentPurpose.SUBSCRIPTION, CREATED_AT + timedelta(microseconds=1))
    assert not matches(reference, "u2", PaymentPurpose.SUBSCRIPTION, CREATED_AT)


def test_to_wire_prefixes_model() -> None:
    assert to_wire("12345", model="97", max_length=25) == "9712345"


def test_to_wire_enforces_limit() -> None:
    with pytest.raises(ReferenceTooLongError):
        to_wire("1" * 24, model="97", max_length=25)


def test_derive_reference_fails_when_limit_too_small() -> None:
    with pytest.raises(ReferenceTooLongError) as exc_info:
        derive_reference("u1", PaymentPurpose.TOPUP, CREATED_AT, max_length=10)

    assert exc_info.value.status_code == 500
    assert exc_info.value.code == "reference_too_long"


def test_default_reference_fits_default_wire_limit() -> None:
    reference = derive_reference("longpayeridentifier", PaymentPurpose.URGENT_LISTING, CREATED_AT)

    assert len(to_wire(reference)) <= 25
