"""Unit tests for IPS QR payload encoding, parsing and rendering."""
import base64
from datetime import datetime

import pytest

from ipspay.config import settings
from ipspay.errors import ConfigurationError, ReferenceTooLongError
from ipspay.models.payment_intent import PaymentPurpose
from ipspay.services.ips_qr import IpsQrEncoder, IpsQrPayload, normalize_account
from ipspay.services.reference import derive_reference

REFERENCE = derive_reference("u1", PaymentPurpose.CONTACT_REVEAL, datetime(2026, 1, 15, 10, 30))
PURPOSE = "Otkrivanje kontakta - Trazim-Radnike.online"


def test_normalize_account_pads_middle_part() -> None:
    assert normalize_account("160-0054001005783-78") == "160005400100578378"
    assert normalize_account("160-5400100578-78") == "160000540010057878"
    assert normalize_account("160005400100578378") == "160005400100578378"


@pytest.mark.parametrize("account", ["", "160-123", "160-12345678901234-78", "16000540010057837X"])
def test_normalize_account_rejects_malformed(account: str) -> None:
    with pytest.raises(ValueError):
        normalize_account(account)


def test_payload_text_field_order(encoder: IpsQrEncoder) -> None:
    """Fields appear in the fixed IPS order with the model-prefixed reference."""
    text = encoder.build_payload(30, REFERENCE, PURPOSE).to_text()

    assert text.startswith(
        "K:PR|V:01|C:1|R:160005400100578378|N:NKNET CONSULTING DOO|I:RSD30,00|"
        "P:NKNET CONSULTING DOO|SF:289|S:"
    )
    assert text.endswith(f"|RO:97{REFERENCE}")


def test_purpose_text_is_truncated_to_field_limit(encoder: IpsQrEncoder) -> None:
    payload = encoder.build_payload(30, REFERENCE, PURPOSE)

    assert payload.purpose_text == PURPOSE[:35]
    assert len(payload.purpose_text) == 35


def test_field_separator_is_removed_from_values(encoder: IpsQrEncoder) -> None:
    payload = encoder.build_payload(30, REFERENCE, "Dopuna | 10 kredita", payer_label="Pera|Peric")

    assert "|" not in payload.purpose_text
    assert payload.payer_label == "Pera Peric"
    assert IpsQrPayload.parse(payload.to_text()).payer_label == "Pera Peric"


def test_parse_recovers_amount_account_and_reference(encoder: IpsQrEncoder) -> None:
    text = encoder.build_payload(1500, REFERENCE, "Pretplata Unlimited").to_text()

    parsed = IpsQrPayload.parse(text)

    assert parsed.amount == 1500
    assert parsed.recipient_account == "160005400100578378"
    assert parsed.reference == f"97{REFERENCE}"
    assert parsed.payment_code == "289"


def test_parse_accepts_amount_without_decimals() -> None:
    text = f"K:PR|V:01|C:1|R:160005400100578378|N:X|I:RSD30|SF:289|S:Test|RO:97{REFERENCE}"

    assert IpsQrPayload.parse(text).amount == 30


@pytest.mark.parametrize(
    "text,message",
    [
        ("K:PT|V:01|C:1|R:160005400100578378|N:X|I:RSD30,00|SF:289|S:T|RO:97", "K must be PR"),
        ("K:PR|V:01|C:1|R:160005400100578378|N:X|I:RSD30,00|SF:289|S:T", "Missing IPS fields: RO"),
        ("K:PR|V:01|C:1|R:160005400100578378|N:X|I:RSD30,50|SF:289|S:T|RO:97", "Fractional"),
        ("K:PR|V:01|C:1|R:160005400100578378|N:X|I:EUR30,00|SF:289|S:T|RO:97", "Malformed IPS amount"),
        ("K:PR|garbage", "Malformed IPS field"),
    ],
)
def test_parse_rejects_invalid_payloads(text: str, message: str) -> None:
    with pytest.raises(ValueError, match=message):
        IpsQrPayload.parse(text)


def test_build_payload_rejects_reference_over_limit() -> None:
    encoder = IpsQrEncoder(
        recipient_name="NKNET CONSULTING DOO",
        recipient_account="160005400100578378",
        reference_max_length=10,
    )

    with pytest.raises(ReferenceTooLongError):
        encoder.build_payload(30, REFERENCE, PURPOSE)


def test_render_png_data_url(encoder: IpsQrEncoder) -> None:
    text = encoder.build_payload(30, REFERENCE, PURPOSE).to_text()

    data_url = IpsQrEncoder.render_png_data_url(text)

    assert data_url.startswith("data:image/png;base64,")
    png = base64.b64decode(data_url.split(",", 1)[1])
    assert png[:8] == b"\x89PNG\r\n\x1a\n"


def test_from_settings_normalizes_account() -> None:
    encoder = IpsQrEncoder.from_settings()

    assert encoder.recipient_account == "160005400100578378"
    assert encoder.reference_model == "97"
    assert encoder.reference_max_length == 25


@pytest.mark.parametrize(
    "update,message",
    [
        ({"ips_recipient_account": "123"}, "IPS_RECIPIENT_ACCOUNT"),
        ({"ips_recipient_name": "  "}, "IPS_RECIPIENT_NAME"),
        ({"ips_payment_code": "28"}, "IPS_PAYMENT_CODE"),
        ({"ips_reference_model": "RF"}, "IPS_REFERENCE_MODEL"),
    ],
)
def test_from_settings_rejects_bad_configuration(update: dict, message: str) -> None:
    config = settings.model_copy(update=update)

    with pytest.raises(ConfigurationError, match=message):
        IpsQrEncoder.from_settings(config)
