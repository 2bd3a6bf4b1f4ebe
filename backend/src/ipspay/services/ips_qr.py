"""NBS IPS QR payload encoding and rendering.

Text format (pipe-delimited ``tag:value`` pairs, fixed order)::

    K:PR|V:01|C:1|R:<account>|N:<name>|I:RSD<amount>,00|P:<payer>|SF:<code>|S:<purpose>|RO:<model><reference>
"""
import base64
import io
import re
from typing import Optional

import qrcode
import structlog
from pydantic import BaseModel, Field

from ipspay.config import Settings, settings as default_settings
from ipspay.errors import ConfigurationError
from ipspay.models.payment_intent import PaymentIntent
from ipspay.services import reference as references

logger = structlog.get_logger(__name__)

IDENTIFICATION_CODE = "PR"
VERSION = "01"
CHARACTER_SET = "1"  # UTF-8
CURRENCY = "RSD"
NAME_MAX_LENGTH = 70

_AMOUNT = re.compile(r"^RSD(\d+)(?:,(\d{1,2}))?$")


def normalize_account(account: str) -> str:
    """
    Normalize a Serbian bank account to the 18-digit form used in field R.

    Accepts ``160-5400100578-78`` style input (middle part zero-padded to 13
    digits) as well as plain digits.

    Raises:
        ValueError: If the result is not exactly 18 digits
    """
    account = account.strip().replace(" ", "")
    if "-" in account:
        parts = account.split("-")
        if len(parts) != 3:
            raise ValueError(f"Malformed bank account {account!r}")
        bank, number, control = parts
        account = f"{bank}{number.zfill(13)}{control}"
    if not (account.isdigit() and len(account) == 18):
        raise ValueError(f"Bank account must have 18 digits, got {account!r}")
    return account


def _clean(value: str, limit: int) -> str:
    # "|" is the field separator and cannot appear inside a value
    return " ".join(value.replace("|", " ").split())[:limit]


class IpsQrPayload(BaseModel):
    """Decoded IPS QR payment request."""

    recipient_account: str = Field(..., min_length=18, max_length=18)
    recipient_name: str = Field(..., min_length=1, max_length=NAME_MAX_LENGTH)
    amount: int = Field(..., gt=0, description="Whole RSD")
    payer_label: str = Field(..., max_length=NAME_MAX_LENGTH)
    payment_code: str = Field(default="289", min_length=3, max_length=3)
    purpose_text: str
    reference: str = Field(..., description="Model followed by the reference number (field RO)")

    def to_text(self) -> str:
        """Render the payload in IPS text form."""
        fields = [
            f"K:{IDENTIFICATION_CODE}",
            f"V:{VERSION}",
            f"C:{CHARACTER_SET}",
            f"R:{self.recipient_account}",
            f"N:{self.recipient_name}",
            f"I:{CURRENCY}{self.amount},00",
            f"P:{self.payer_label}",
            f"SF:{self.payment_code}",
            f"S:{self.purpose_text}",
            f"RO:{self.reference}",
        ]
        return "|".join(fields)

    @classmethod
    def parse(cls, text: str) -> "IpsQrPayload":
        """
        Decode IPS text form.

        Raises:
            ValueError: If a required field is missing or malformed
        """
        values = {}
        for field in text.strip().split("|"):
            tag, separator, value = field.partition(":")
            if not separator:
                raise ValueError(f"Malformed IPS field {field!r}")
            values[tag] = value

        if values.get("K") != IDENTIFICATION_CODE:
            raise ValueError("Not an IPS payment request (K must be PR)")

        missing = [tag for tag in ("R", "N", "I", "SF", "S", "RO") if tag not in values]
        if missing:
            raise ValueError(f"Missing IPS fields: {', '.join(missing)}")

        match = _AMOUNT.match(values["I"])
        if not match:
            raise ValueError(f"Malformed IPS amount {values['I']!r}")
        if match.group(2) and int(match.group(2)):
            raise ValueError(f"Fractional amounts are not supported: {values['I']!r}")

        return cls(
            recipient_account=values["R"],
            recipient_name=values["N"],
            amount=int(match.group(1)),
            payer_label=values.get("P", ""),
            payment_code=values["SF"],
            purpose_text=values["S"],
            reference=values["RO"],
        )


class IpsQrEncoder:
    """Encodes payment intents as IPS QR payloads for a fixed recipient."""

    def __init__(
        self,
        recipient_name: str,
        recipient_account: str,
        payment_code: str = "289",
        reference_model: str = "97",
        reference_max_length: int = 25,
        purpose_max_length: int = 35,
    ):
        self.recipient_name = recipient_name
        self.recipient_account = recipient_account
        self.payment_code = payment_code
        self.reference_model = reference_model
        self.reference_max_length = reference_max_length
        self.purpose_max_length = purpose_max_length

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "IpsQrEncoder":
        """
        Build the encoder from application settings.

        Raises:
            ConfigurationError: If recipient details are missing or malformed
        """
        config = config or default_settings

        name = _clean(config.ips_recipient_name or "", NAME_MAX_LENGTH)
        if not name:
            raise ConfigurationError("IPS_RECIPIENT_NAME is not configured")
        try:
            account = normalize_account(config.ips_recipient_account or "")
        except ValueError as exc:
            raise ConfigurationError(f"IPS_RECIPIENT_ACCOUNT is invalid: {exc}") from exc
        if not (config.ips_payment_code.isdigit() and len(config.ips_payment_code) == 3):
            raise ConfigurationError("IPS_PAYMENT_CODE must be three digits")
        if not config.ips_reference_model.isdigit():
            raise ConfigurationError("IPS_REFERENCE_MODEL must be numeric")

        return cls(
            recipient_name=name,
            recipient_account=account,
            payment_code=config.ips_payment_code,
            reference_model=config.ips_reference_model,
            reference_max_length=config.ips_reference_max_length,
            purpose_max_length=config.ips_purpose_max_length,
        )

    def build_payload(
        self,
        amount: int,
        reference_number: str,
        purpose_text: str,
        payer_label: Optional[str] = None,
    ) -> IpsQrPayload:
        """
        Assemble the payload for one payment.

        Raises:
            ReferenceTooLongError: If the reference does not fit field RO
        """
        return IpsQrPayload(
            recipient_account=self.recipient_account,
            recipient_name=self.recipient_name,
            amount=amount,
            payer_label=_clean(payer_label or self.recipient_name, NAME_MAX_LENGTH),
            payment_code=self.payment_code,
            purpose_text=_clean(purpose_text, self.purpose_max_length),
            reference=references.to_wire(
                reference_number,
                model=self.reference_model,
                max_length=self.reference_max_length,
            ),
        )

    def encode(self, intent: PaymentIntent, payer_label: Optional[str] = None) -> str:
        """Text payload for a payment intent."""
        return self.build_payload(
            amount=intent.amount,
            reference_number=intent.reference_number,
            purpose_text=intent.description,
            payer_label=payer_label,
        ).to_text()

    @staticmethod
    def render_png_data_url(text: str, box_size: int = 10, border: int = 2) -> str:
        """
        Rasterize a payload as a PNG and return it as a base64 data URL.

        Args:
            text: IPS text payload
            box_size: Pixels per QR module
            border: Quiet zone width in modules

        Returns:
            ``data:image/png;base64,...`` string for direct use in an <img> tag
        """
        qr = qrcode.QRCode(
            error_correction=qrcode.constants.ERROR_CORRECT_M,
            box_size=box_size,
            border=border,
        )
        qr.add_data(text)
        qr.make(fit=True)
        image = qr.make_image(fill_color="black", back_color="white")

        buffer = io.BytesIO()
        image.save(buffer)
        encoded = base64.b64encode(buffer.getvalue()).decode("ascii")

        logger.debug("ips_qr_rendered", qr_version=qr.version, payload_length=len(text))
        return f"data:image/png;base64,{encoded}"
