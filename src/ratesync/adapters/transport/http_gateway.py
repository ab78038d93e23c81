# src/ratesync/adapters/transport/http_gateway.py
"""
HTTP Gateway Transport

Hands sync messages to an external cross-domain relay gateway over HTTP.
The gateway owns routing, fee settlement and delivery; this adapter only
quotes and submits.

    GET  {base}/fee?destination=..&receiver=..&payload=0x..  -> {"fee": 123}
    POST {base}/messages  {"destination", "receiver", "sender", "payload"}
                                                             -> {"message_id": "..."}

Every failure (4xx, 5xx, timeout, network, malformed reply) is reported as
TransportRejectedError. Nothing is retried here.

Files that USE this module:
- ratesync.app (when TRANSPORT_URL is set)
- tests.test_transport (unit tests)

Files that this module USES:
- ratesync.adapters.transport.base (Transport interface)
- ratesync.domain.codec (hex payloads)
- ratesync.config (HTTP timeout)
"""
import logging
from typing import Optional

import requests

from ratesync.adapters.transport.base import Transport
from ratesync.config import settings
from ratesync.domain.codec import to_hex
from ratesync.domain.errors import ConfigurationError, TransportRejectedError

log = logging.getLogger(__name__)


class HttpGatewayTransport(Transport):
    def __init__(self, handle: str, base_url: str, timeout: Optional[int] = None):
        """
        Initialize gateway transport.

        Args:
            handle: Transport identity presented to receivers
            base_url: Gateway base URL
            timeout: Optional HTTP timeout in seconds (defaults to settings.http_timeout_seconds)

        Raises:
            ConfigurationError: If base_url is empty
        """
        super().__init__(handle)
        if not base_url:
            raise ConfigurationError("Gateway transport needs a base URL")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout or settings.http_timeout_seconds

    def quote_fee(self, destination_id: int, receiver: str, payload: bytes) -> int:
        data = self._request(
            "GET",
            "/fee",
            params={"destination": destination_id, "receiver": receiver, "payload": to_hex(payload)},
        )
        try:
            fee = int(data["fee"])
        except (KeyError, ValueError, TypeError) as e:
            log.error("Gateway fee quote has unexpected schema: %s", data)
            raise TransportRejectedError(f"Gateway fee quote schema error: {e}") from e
        if fee < 0:
            raise TransportRejectedError(f"Gateway quoted a negative fee: {fee}")
        return fee

    def send(self, destination_id: int, receiver: str, payload: bytes, sender: str) -> str:
        data = self._request(
            "POST",
            "/messages",
            json={
                "destination": destination_id,
                "receiver": receiver,
                "sender": sender,
                "payload": to_hex(payload),
            },
        )
        message_id = data.get("message_id")
        if not message_id:
            log.error("Gateway accepted message without an id: %s", data)
            raise TransportRejectedError("Gateway reply is missing 'message_id'")
        log.info("Gateway accepted message %s for %s on %s", message_id, receiver, destination_id)
        return str(message_id)

    def _request(self, method: str, path: str, **kwargs) -> dict:
        url = f"{self.base_url}{path}"
        try:
            resp = requests.request(method, url, timeout=self.timeout, **kwargs)
            resp.raise_for_status()
            data = resp.json()
        except requests.exceptions.Timeout as e:
            log.warning("Gateway timeout after %d seconds: %s %s", self.timeout, method, url)
            raise TransportRejectedError(f"Gateway timeout after {self.timeout}s") from e
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else "?"
            log.error("Gateway HTTP error %s on %s %s", status, method, url)
            raise TransportRejectedError(f"Gateway HTTP {status}: {e}") from e
        except requests.exceptions.RequestException as e:
            log.warning("Gateway request failed: %s", e)
            raise TransportRejectedError(f"Gateway request failed: {e}") from e
        except ValueError as e:
            log.error("Gateway returned invalid JSON: %s", e)
            raise TransportRejectedError(f"Gateway returned invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise TransportRejectedError(f"Gateway returned non-object JSON: {data!r}")
        return data
