# neigh/services/paypal_service.py
"""
Minimal PayPal Orders v2 client: create an order for an amount, then capture
it once the buyer has approved it.
"""
from __future__ import annotations

import logging
import time

import requests
from flask import current_app

log = logging.getLogger(__name__)

_token_cache: dict[str, tuple[str, float]] = {}  # {"key": (token, expiry_ts)}


class PayPalError(RuntimeError):
    pass


class PayPalClient:

    def __init__(self, api_url: str, client_id: str, secret: str,
                 currency: str = "USD", timeout: int = 20):
        self.api_url = api_url.rstrip("/")
        self.client_id = client_id
        self.secret = secret
        self.currency = currency.upper()
        self.timeout = timeout

    @classmethod
    def from_app(cls) -> "PayPalClient":
        cfg = current_app.config
        return cls(
            api_url=cfg["PAYPAL_API_URL"],
            client_id=cfg.get("PAYPAL_CLIENT_ID") or "",
            secret=cfg.get("PAYPAL_APP_SECRET") or "",
            currency=cfg.get("CURRENCY", "USD"),
            timeout=cfg.get("PAYPAL_TIMEOUT", 20),
        )

    def _auth_token(self) -> str:
        """Fetch or reuse the app access token (PayPal reports ``expires_in``)."""
        cache_key = f"{self.api_url}|{self.client_id}"
        tok, exp = _token_cache.get(cache_key, (None, 0))
        now = time.time()
        if tok and now < exp - 30:
            return tok

        if not self.client_id or not self.secret:
            raise PayPalError("PayPal credentials are not configured")

        resp = requests.post(
            f"{self.api_url}/v1/oauth2/token",
            data={"grant_type": "client_credentials"},
            auth=(self.client_id, self.secret),
            headers={"Accept": "application/json"},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        data = resp.json()
        token = data["access_token"]
        _token_cache[cache_key] = (token, now + int(data.get("expires_in", 300)))
        return token

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self._auth_token()}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    def _handle(self, r: requests.Response, action: str) -> dict:
        log.info("PayPal %s status=%s", action, r.status_code)
        if r.status_code >= 400:
            log.error("PayPal %s error %s | body=%s", action, r.status_code, r.text)
            raise PayPalError(f"PayPal {action} failed ({r.status_code})")
        return r.json()

    def create_payment(self, amount) -> dict:
        """Create an order; returns PayPal's ``{id, status, links, ...}``."""
        payload = {
            "intent": "CAPTURE",
            "purchase_units": [
                {"amount": {"currency_code": self.currency, "value": f"{float(amount):.2f}"}},
            ],
        }
        r = requests.post(
            f"{self.api_url}/v2/checkout/orders",
            json=payload,
            headers=self._headers(),
            timeout=self.timeout,
        )
        return self._handle(r, "create order")

    def capture_payment(self, order_id: str) -> dict:
        """Capture an approved order; returns ``{id, status, payer, purchase_units}``."""
        r = requests.post(
            f"{self.api_url}/v2/checkout/orders/{order_id}/capture",
            headers=self._headers(),
            timeout=self.timeout,
        )
        return self._handle(r, "capture")


def captured_amount(capture: dict) -> str:
    """Amount of the first capture in a capture response, "0.00" when absent."""
    try:
        unit = capture["purchase_units"][0]
        return unit["payments"]["captures"][0]["amount"]["value"]
    except (KeyError, IndexError, TypeError):
        return "0.00"
