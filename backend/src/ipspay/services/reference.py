"""Payment reference numbers ("poziv na broj") for IPS transfers.

A reference is ``<check digits><purpose tag><timestamp><payer slice>``:

- purpose tag: one digit per purchase purpose
- timestamp: creation time in microseconds since the Unix epoch, base 36,
  zero-padded to 11 characters
- payer slice: the first four ASCII alphanumerics of the payer id, upper-cased
- check digits: ISO 7064 MOD 97-10 over the rest, as payment model 97 requires

Anyone holding (payer id, purpose, creation time) can recompute a reference,
and anyone holding a reference can check it was not mistyped.
"""
import re
from datetime import datetime, timedelta, timezone
from typing import NamedTuple, Optional

from ipspay.config import settings
from ipspay.errors import ReferenceTooLongError
from ipspay.models.payment_intent import PaymentPurpose

PURPOSE_TAGS = {
    PaymentPurpose.SUBSCRIPTION: "1",
    PaymentPurpose.TOPUP: "2",
    PaymentPurpose.CONTACT_REVEAL: "3",
    PaymentPurpose.PRIORITY_LISTING: "4",
    PaymentPurpose.URGENT_LISTING: "5",
}
_TAG_PURPOSES = {tag: purpose for purpose, tag in PURPOSE_TAGS.items()}

TIMESTAMP_WIDTH = 11
PAYER_SLICE_LENGTH = 4

_EPOCH = datetime(1970, 1, 1)
_BASE36 = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
_NON_ALNUM = re.compile(r"[^0-9A-Za-z]")


class ReferenceParts(NamedTuple):
    """Fields recovered from a reference number."""

    purpose: PaymentPurpose
    created_at: datetime
    payer_slice: str


def _to_base36(value: int, width: int) -> str:
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits)).rjust(width, "0")


def _to_naive_utc(moment: datetime) -> datetime:
    if moment.tzinfo is not None:
        return moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment


def _mod97(text: str) -> int:
    # Letters count as 10..35, as in IBAN validation
    return int("".join(str(int(char, 36)) for char in text)) % 97


def check_digits(body: str) -> str:
    """
    Compute ISO 7064 MOD 97-10 check digits for a reference body.

    Args:
        body: Alphanumeric reference body (without check digits)

    Returns:
        Two-digit check string
    """
    return f"{98 - _mod97(body.upper() + '00'):02d}"


def payer_slice(payer_id: str) -> str:
    """Short, memo-safe slice of the payer id."""
    cleaned = _NON_ALNUM.sub("", payer_id).upper()
    if not cleaned:
        raise ValueError(f"Payer id {payer_id!r} has no alphanumeric characters")
    return cleaned[:PAYER_SLICE_LENGTH]


def encode_timestamp(created_at: datetime) -> str:
    """Encode a creation time at microsecond resolution."""
    micros = (_to_naive_utc(created_at) - _EPOCH) // timedelta(microseconds=1)
    if micros < 0:
        raise ValueError("Creation time precedes the Unix epoch")
    return _to_base36(micros, TIMESTAMP_WIDTH)


def to_wire(reference: str, model: Optional[str] = None, max_length: Optional[int] = None) -> str:
    """
    Build the IPS ``RO`` field value (model followed by the reference).

    Raises:
        ReferenceTooLongError: If the value exceeds the configured RO limit
    """
    model = settings.ips_reference_model if model is None else model
    max_length = settings.ips_reference_max_length if max_length is None else max_length

    wire = f"{model}{reference}"
    if len(wire) > max_length:
        raise ReferenceTooLongError(
            f"Reference field is {len(wire)} characters, limit is {max_length}",
            reference_number=reference,
        )
    return wire


def derive_reference(
    payer_id: str,
    purpose: PaymentPurpose,
    created_at: datetime,
    model: Optional[str] = None,
    max_length: Optional[int] = None,
) -> str:
    """
    Derive the reference number for a new payment intent.

    Pure function of its inputs: the same triple always yields the same
    reference, and creation times one microsecond apart yield different ones.

    Args:
        payer_id: Requesting account identifier
        purpose: Purchase purpose
        created_at: Intent creation time (naive UTC or timezone-aware)
        model: Reference model prefixed on the wire (defaults to settings)
        max_length: RO field limit (defaults to settings)

    Returns:
        Reference number including its leading check digits

    Raises:
        ReferenceTooLongError: If model plus reference exceeds the RO limit
    """
    body = PURPOSE_TAGS[purpose] + encode_timestamp(created_at) + payer_slice(payer_id)
    reference = check_digits(body) + body
    to_wire(reference, model=model, max_length=max_length)
    return reference


def verify_reference(reference: str) -> bool:
    """Check the MOD 97-10 digits of a reference (catches typos in reconciliation)."""
    reference = reference.strip().upper()
    if len(reference) < 3 or not reference[:2].isdigit() or _NON_ALNUM.search(reference):
        return False
    return _mod97(reference[2:] + reference[:2]) == 1


def parse_reference(reference: str) -> ReferenceParts:
    """
    Recover purpose, creation time and payer slice from a reference.

    Raises:
        ValueError: If the reference is malformed or its check digits are wrong
    """
    reference = reference.strip().upper()
    if not verify_reference(reference):
        raise ValueError(f"Invalid reference number {reference!r}")

    body = reference[2:]
    tag = body[0]
    encoded_time = body[1 : 1 + TIMESTAMP_WIDTH]
    slice_ = body[1 + TIMESTAMP_WIDTH :]

    if tag not in _TAG_PURPOSES or len(encoded_time) != TIMESTAMP_WIDTH or not slice_:
        raise ValueError(f"Invalid reference number {reference!r}")

    created_at = _EPOCH + timedelta(microseconds=int(encoded_time, 36))
    return ReferenceParts(purpose=_TAG_PURPOSES[tag], created_at=created_at, payer_slice=slice_)


def matches(reference: str, payer_id: str, purpose: PaymentPurpose, created_at: datetime) -> bool:
    """Audit check: does the reference belong to this (payer, purpose, time) triple?"""
    try:
        return reference.strip().upper() == derive_reference(payer_id, purpose, created_at, max_length=10**6)
    except ValueError:
        return False
