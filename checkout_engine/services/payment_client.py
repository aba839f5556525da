# checkout_engine/services/payment_client.py
import requests

from checkout_engine.utils.retry import http_retry
from checkout_engine.utils.settings import PAYMENT_GATEWAY_URL, PAYMENT_GATEWAY_TIMEOUT
from checkout_engine.utils.logging import get_logger

logger = get_logger(__name__)


def encode_params(params: dict, prefix: str | None = None) -> list[tuple[str, str]]:
    """
    Zagnieżdżone parametry -> form-encoded w stylu bramki:
    {"line_items": [{"quantity": 2}]} -> [("line_items[0][quantity]", "2")]
    """
    pairs: list[tuple[str, str]] = []

    def _walk(value, key):
        if value is None:
            return
        if isinstance(value, dict):
            for k, v in value.items():
                _walk(v, f"{key}[{k}]" if key else str(k))
        elif isinstance(value, (list, tuple)):
            for i, v in enumerate(value):
                _walk(v, f"{key}[{i}]")
        elif isinstance(value, bool):
            pairs.append((key, "true" if value else "false"))
        else:
            pairs.append((key, str(value)))

    _walk(params, prefix)
    return pairs


class PaymentClient:
    """
    Klient HTTP bramki płatności. Klucz jest per sklep, więc podawany przy każdym wywołaniu.
    create_* nie są ponawiane (nie są idempotentne), delete / deactivate tak.
    """

    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        self.base_url = (base_url or PAYMENT_GATEWAY_URL).rstrip("/")
        self.timeout = timeout or PAYMENT_GATEWAY_TIMEOUT

    def create_checkout_session(self, api_key: str, params: dict) -> dict:
        return self._post(api_key, "/checkout/sessions", params)

    def create_coupon(self, api_key: str, params: dict) -> dict:
        return self._post(api_key, "/coupons", params)

    @http_retry()
    def delete_coupon(self, api_key: str, coupon_id: str) -> dict:
        url = f"{self.base_url}/coupons/{coupon_id}"
        logger.info(f"PaymentClient DELETE {url}")

        resp = requests.delete(url, auth=(api_key, ""), timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    def create_promotion_code(self, api_key: str, params: dict) -> dict:
        return self._post(api_key, "/promotion_codes", params)

    @http_retry()
    def deactivate_promotion_code(self, api_key: str, promotion_code_id: str) -> dict:
        return self._post(api_key, f"/promotion_codes/{promotion_code_id}", {"active": False})

    def _post(self, api_key: str, path: str, params: dict) -> dict:
        url = f"{self.base_url}{path}"
        logger.info(f"PaymentClient POST {url}")

        resp = requests.post(
            url,
            data=encode_params(params),
            auth=(api_key, ""),
            timeout=self.timeout,
        )
        resp.raise_for_status()
        return resp.json()
