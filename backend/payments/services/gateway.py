from __future__ import annotations

import logging
import time
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Optional

import requests
from django.conf import settings

from payments.exceptions import GatewayError

logger = logging.getLogger(__name__)


def to_minor_units(amount: Decimal) -> int:
    """Convert a major-unit amount (pesos) to the gateway's integer centavos."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _first_error(payload: Any) -> Dict[str, Any]:
    if isinstance(payload, dict):
        errors = payload.get("errors")
        if isinstance(errors, list) and errors and isinstance(errors[0], dict):
            return errors[0]
    return {}


class GatewayClient:
    """
    Authenticated HTTP client for the PayMongo REST API.

    All outbound gateway traffic goes through `request`. Transient failures
    (429/5xx, connection errors, timeouts) are retried exactly once after a
    fixed backoff; everything else fails on the first attempt.
    """

    MAX_ATTEMPTS = 2

    def __init__(
        self,
        *,
        secret_key: Optional[str] = None,
        api_base: Optional[str] = None,
        api_version: Optional[str] = None,
        timeout: Optional[float] = None,
        backoff_seconds: Optional[float] = None,
    ):
        self._secret_key = secret_key if secret_key is not None else settings.PAYMONGO_SECRET_KEY
        self.api_base = (api_base or settings.PAYMONGO_API_BASE).rstrip("/")
        self.api_version = api_version or settings.PAYMONGO_API_VERSION
        self.timeout = timeout if timeout is not None else settings.PAYMONGO_TIMEOUT_SECONDS
        self.backoff_seconds = (
            backoff_seconds if backoff_seconds is not None else settings.PAYMONGO_RETRY_BACKOFF_SECONDS
        )

    def _headers(self, idempotency_key: Optional[str]) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Paymongo-Version": self.api_version,
        }
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key
        return headers

    def _url(self, path: str) -> str:
        normalized = path if path.startswith("/") else f"/{path}"
        return f"{self.api_base}{normalized}"

    def request(
        self,
        path: str,
        method: str = "GET",
        body: Optional[Dict[str, Any]] = None,
        idempotency_key: Optional[str] = None,
        query_params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        if not self._secret_key:
            raise GatewayError(None, "not_configured", "PAYMONGO_SECRET_KEY is not configured.")

        params = {key: value for key, value in (query_params or {}).items() if value not in (None, "")}
        url = self._url(path)
        attempt = 0
        while True:
            attempt += 1
            try:
                response = requests.request(
                    method.upper(),
                    url,
                    json=body,
                    params=params or None,
                    headers=self._headers(idempotency_key),
                    auth=(self._secret_key, ""),
                    timeout=self.timeout,
                )
            except requests.RequestException as exc:
                # No response is not proof the call failed at the gateway; the
                # caller must reconcile before treating the charge as absent.
                code = "timeout" if isinstance(exc, requests.Timeout) else "network_error"
                if attempt < self.MAX_ATTEMPTS:
                    logger.warning("Gateway %s %s failed (%s); retrying once.", method, path, code)
                    time.sleep(self.backoff_seconds)
                    continue
                raise GatewayError(None, code, str(exc)) from exc

            if 200 <= response.status_code < 300:
                if response.status_code == 204 or not response.content:
                    return {}
                return response.json()

            if response.status_code in GatewayError.RETRYABLE_STATUSES and attempt < self.MAX_ATTEMPTS:
                logger.warning(
                    "Gateway %s %s returned %s; retrying once.", method, path, response.status_code
                )
                time.sleep(self.backoff_seconds)
                continue

            try:
                payload = response.json()
            except ValueError:
                payload = None
            error = _first_error(payload)
            logger.error(
                "Gateway %s %s failed with %s: %s",
                method,
                path,
                response.status_code,
                error or response.text[:500],
            )
            raise GatewayError(response.status_code, error.get("code"), error.get("detail"))

    # Resource helpers. Each returns the `data` resource of the response.

    def create_payment_intent(
        self,
        *,
        amount: Decimal,
        payment_method_allowed: list,
        description: str,
        metadata: Dict[str, Any],
        idempotency_key: str,
        payment_method_options: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        attributes = {
            "amount": to_minor_units(amount),
            "currency": settings.PAYMENT_CURRENCY,
            "payment_method_allowed": payment_method_allowed,
            "description": description,
            "statement_descriptor": settings.PAYMENT_STATEMENT_DESCRIPTOR,
            "metadata": metadata,
        }
        if payment_method_options:
            attributes["payment_method_options"] = payment_method_options
        response = self.request(
            "/payment_intents",
            "POST",
            body={"data": {"attributes": attributes}},
            idempotency_key=idempotency_key,
        )
        return response["data"]

    def retrieve_payment_intent(self, intent_id: str) -> Dict[str, Any]:
        return self.request(f"/payment_intents/{intent_id}")["data"]

    def create_payment_method(
        self,
        *,
        method_type: str,
        details: Optional[Dict[str, Any]] = None,
        billing: Optional[Dict[str, Any]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        attributes: Dict[str, Any] = {"type": method_type}
        if details:
            attributes["details"] = details
        if billing:
            attributes["billing"] = billing
        if metadata:
            attributes["metadata"] = metadata
        response = self.request("/payment_methods", "POST", body={"data": {"attributes": attributes}})
        return response["data"]

    def attach_payment_intent(
        self,
        intent_id: str,
        *,
        payment_method_id: str,
        return_url: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        attributes: Dict[str, Any] = {"payment_method": payment_method_id}
        if return_url:
            attributes["return_url"] = return_url
        response = self.request(
            f"/payment_intents/{intent_id}/attach",
            "POST",
            body={"data": {"attributes": attributes}},
            idempotency_key=idempotency_key,
        )
        return response["data"]
