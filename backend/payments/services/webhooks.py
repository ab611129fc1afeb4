from __future__ import annotations

import hashlib
import hmac
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from django.conf import settings

from payments.exceptions import ReconciliationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WebhookEvent:
    id: str
    type: str
    resource_id: str
    resource_type: str
    attributes: Dict[str, Any] = field(default_factory=dict)

    @property
    def metadata(self) -> Dict[str, Any]:
        metadata = self.attributes.get("metadata")
        return metadata if isinstance(metadata, dict) else {}

    @property
    def booking_id(self) -> Optional[int]:
        raw = self.metadata.get("booking_id") or self.metadata.get("bookingId")
        try:
            return int(raw) if raw is not None else None
        except (TypeError, ValueError):
            return None

    @property
    def payment_intent_id(self) -> Optional[str]:
        if self.resource_type == "payment_intent":
            return self.resource_id
        return self.attributes.get("payment_intent_id")


class WebhookVerifier:
    """
    Checks the `Paymongo-Signature` header of an inbound webhook.

    The header carries `t=<unix seconds>` and one or more `v1=<hex digest>`
    values; each digest is an HMAC-SHA256 of "{t}.{raw body}" keyed with the
    gateway secret.
    """

    def __init__(
        self,
        secret: Optional[str] = None,
        tolerance_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._secret = secret if secret is not None else settings.PAYMONGO_SECRET_KEY
        self.tolerance_seconds = (
            tolerance_seconds
            if tolerance_seconds is not None
            else settings.PAYMONGO_WEBHOOK_TOLERANCE_SECONDS
        )
        self._clock = clock

    def sign(self, raw_body: str, timestamp: int) -> str:
        payload = f"{timestamp}.{raw_body}".encode("utf-8")
        return hmac.new(self._secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()

    def verify(self, raw_body, signature_header) -> bool:
        try:
            return self._verify(raw_body, signature_header)
        except Exception:
            logger.warning("Webhook signature check failed on malformed input.", exc_info=True)
            return False

    def _verify(self, raw_body, signature_header) -> bool:
        if not self._secret or not signature_header or not isinstance(signature_header, str):
            return False
        if isinstance(raw_body, bytes):
            raw_body = raw_body.decode("utf-8")

        timestamp = None
        signatures = []
        for part in signature_header.split(","):
            key, sep, value = part.strip().partition("=")
            if not sep or not value:
                return False
            if key == "t":
                if timestamp is not None:
                    return False
                timestamp = value
            elif key == "v1":
                signatures.append(value)

        if timestamp is None or not signatures or not timestamp.isdigit():
            return False
        if abs(self._clock() - int(timestamp)) > self.tolerance_seconds:
            return False

        expected = self.sign(raw_body, timestamp)
        matched = False
        for signature in signatures:
            # compare every candidate so timing does not depend on which one matches
            if hmac.compare_digest(signature.encode("utf-8"), expected.encode("utf-8")):
                matched = True
        return matched


def parse_event(raw_body) -> WebhookEvent:
    """Extract the event envelope from a verified webhook body."""
    try:
        payload = json.loads(raw_body)
        data = payload["data"]
        attributes = data.get("attributes") or {}
        resource = attributes.get("data") or {}
        return WebhookEvent(
            id=data.get("id", ""),
            type=attributes["type"],
            resource_id=resource.get("id", ""),
            resource_type=resource.get("type", ""),
            attributes=resource.get("attributes") or {},
        )
    except (ValueError, KeyError, TypeError, AttributeError) as exc:
        raise ReconciliationError(f"Unreadable webhook payload: {exc}") from exc
