"""
HTTP exchange with the PayHOST processing endpoint.

The request body is never logged since it carries the account password.
There are no retries at this layer; re-querying is the caller's decision.
"""

from typing import Optional

import httpx

from app.core.exceptions import TransportError
import logging

logger = logging.getLogger(__name__)

SOAP_HEADERS = {
    "Content-Type": "text/xml",
    "SOAPAction": "WebPaymentRequest",
}

DEFAULT_TIMEOUT_SECONDS = 60.0
DEFAULT_MAX_REDIRECTS = 10


class PayHostTransport:
    """Posts SOAP bodies to the gateway and returns the raw response text"""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_redirects: int = DEFAULT_MAX_REDIRECTS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self.max_redirects = max_redirects
        # Injected transport lets tests answer requests without a network
        self._transport = transport

    @classmethod
    def from_config(cls, paygate_config) -> "PayHostTransport":
        return cls(
            timeout=paygate_config.timeout_seconds,
            max_redirects=paygate_config.max_redirects,
        )

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            max_redirects=self.max_redirects,
            transport=self._transport,
        )

    async def post(self, endpoint: str, body: str) -> str:
        """
        POST a SOAP request to the gateway.

        Args:
            endpoint: Gateway URL
            body: SOAP envelope

        Returns:
            Response body, unmodified

        Raises:
            TransportError: On connection failure, timeout, redirect loop or non-2xx status
        """
        try:
            async with self._client() as client:
                response = await client.post(
                    endpoint,
                    content=body.encode("utf-8"),
                    headers=SOAP_HEADERS,
                )
        except httpx.TimeoutException as e:
            logger.warning(f"PayHOST request timed out after {self.timeout}s")
            raise TransportError("Gateway request timed out", endpoint=endpoint) from e
        except httpx.TooManyRedirects as e:
            raise TransportError(
                f"Gateway redirected more than {self.max_redirects} times",
                endpoint=endpoint,
            ) from e
        except httpx.HTTPError as e:
            logger.warning(f"PayHOST request failed: {type(e).__name__}")
            raise TransportError("Could not reach payment gateway", endpoint=endpoint) from e

        if not response.is_success:
            logger.warning(f"PayHOST responded with HTTP {response.status_code}")
            raise TransportError(
                "Gateway returned an error status",
                endpoint=endpoint,
                status_code=response.status_code,
            )

        logger.debug(f"PayHOST responded with {len(response.content)} bytes")
        return response.text
