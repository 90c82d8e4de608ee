"""
PayFast wire format: payment data, signatures and ITN validation.

Signature scheme
----------------
MD5 hex digest of ``key=value`` pairs joined with ``&``:

* keys sorted alphabetically, ``signature`` itself excluded
* pairs with empty values skipped
* the merchant passphrase included as the ``passphrase`` key
* keys and values encoded like JavaScript ``encodeURIComponent`` with
  ``%20`` written as ``+``
"""

from __future__ import annotations

import enum
import hashlib
import hmac
import secrets
import string
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Mapping, Optional
from urllib.parse import quote, urlencode

from .enums import PaymentStatus
from .errors import InternalError, PaymentValidationError

SANDBOX_URL = "https://sandbox.payfast.co.za/eng/process"
LIVE_URL = "https://www.payfast.co.za/eng/process"

# Characters encodeURIComponent leaves untouched besides alphanumerics
_URI_COMPONENT_SAFE = "-_.!~*'()"


class GatewayStatus(str, enum.Enum):
    COMPLETE = "COMPLETE"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    PENDING = "PENDING"


_STATUS_MAP = {
    GatewayStatus.COMPLETE.value: PaymentStatus.COMPLETED,
    GatewayStatus.FAILED.value: PaymentStatus.FAILED,
    GatewayStatus.CANCELLED.value: PaymentStatus.CANCELLED,
}


@dataclass(frozen=True)
class PayFastConfig:
    merchant_id: str
    merchant_key: str
    passphrase: str
    sandbox: bool = True
    return_url: str = ""
    cancel_url: str = ""
    notify_url: str = ""

    @classmethod
    def from_settings(cls, settings) -> "PayFastConfig":
        config = cls(
            merchant_id=settings.payfast_merchant_id,
            merchant_key=settings.payfast_merchant_key,
            passphrase=settings.payfast_passphrase,
            sandbox=settings.payfast_sandbox,
            return_url=settings.payfast_return_url,
            cancel_url=settings.payfast_cancel_url,
            notify_url=settings.payfast_notify_url,
        )
        if not (config.merchant_id and config.merchant_key and config.passphrase):
            raise InternalError("payment gateway configuration is incomplete")
        return config

    @property
    def process_url(self) -> str:
        return SANDBOX_URL if self.sandbox else LIVE_URL


def _encode(value: str) -> str:
    return quote(value, safe=_URI_COMPONENT_SAFE).replace("%20", "+")


def generate_signature(
    data: Mapping[str, str], passphrase: Optional[str] = None
) -> str:
    to_sign = {k: v for k, v in data.items() if k != "signature"}
    if passphrase:
        to_sign["passphrase"] = passphrase

    payload = "&".join(
        f"{_encode(key)}={_encode(str(to_sign[key]))}"
        for key in sorted(to_sign)
        if to_sign[key] not in (None, "")
    )
    return hashlib.md5(payload.encode("utf-8")).hexdigest()


def verify_signature(data: Mapping[str, str], passphrase: Optional[str] = None) -> bool:
    received = data.get("signature")
    if not received:
        return False
    return hmac.compare_digest(received, generate_signature(data, passphrase))


def generate_payment_id() -> str:
    """Unique merchant transaction id, e.g. ``PF_1718000000000_K3Q9ZD``."""
    alphabet = string.ascii_uppercase + string.digits
    suffix = "".join(secrets.choice(alphabet) for _ in range(6))
    return f"PF_{int(time.time() * 1000)}_{suffix}"


def prepare_payment_data(
    config: PayFastConfig,
    *,
    amount: Decimal,
    item_name: str,
    item_description: Optional[str] = None,
    payment_id: Optional[str] = None,
    account_id: Optional[int] = None,
    package_id: Optional[int] = None,
) -> dict[str, str]:
    data = {
        "merchant_id": config.merchant_id,
        "merchant_key": config.merchant_key,
        "return_url": config.return_url,
        "cancel_url": config.cancel_url,
        "notify_url": config.notify_url,
        "amount": f"{Decimal(amount):.2f}",
        "item_name": item_name,
        "item_description": item_description or item_name,
    }
    if payment_id:
        data["m_payment_id"] = payment_id
    if account_id is not None:
        data["custom_str1"] = str(account_id)
    if package_id is not None:
        data["custom_str2"] = str(package_id)
    return data


def payment_url(config: PayFastConfig, data: Mapping[str, str], signature: str) -> str:
    params = [(k, v) for k, v in data.items() if v not in (None, "")]
    params.append(("signature", signature))
    return f"{config.process_url}?{urlencode(params)}"


def validate_itn(itn: Mapping[str, str], config: PayFastConfig) -> None:
    """Raise ``PaymentValidationError`` unless signature and merchant match."""
    if not verify_signature(itn, config.passphrase):
        raise PaymentValidationError("Invalid signature")
    if itn.get("merchant_id") != config.merchant_id:
        raise PaymentValidationError("Invalid merchant ID")


def map_gateway_status(status: str) -> PaymentStatus:
    return _STATUS_MAP.get(status, PaymentStatus.PENDING)
