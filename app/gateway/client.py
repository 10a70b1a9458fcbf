"""
PayHOST follow-up client: credentials, request, transport and parsing in one call.
"""

from typing import Optional

from pydantic import ValidationError

from app.core.config import PayGateConfig
from app.core.exceptions import PaymentValidationError
from app.gateway.credentials import CredentialResolver
from app.gateway.request_builder import QueryRequestBuilder
from app.gateway.response_parser import ResponseParser
from app.gateway.transport import PayHostTransport
from app.schemas.paygate import ParsedStatus, StatusQuery
import logging

logger = logging.getLogger(__name__)


class PayHostClient:
    """Runs SingleFollowUpRequest queries against PayHOST"""

    def __init__(self, config: PayGateConfig, transport: Optional[PayHostTransport] = None):
        self.config = config
        self.transport = transport or PayHostTransport.from_config(config)

    def prepare_query(self, pay_request_id: str) -> str:
        """
        Build the request body for a PayRequestId using configured credentials.

        Raises:
            PaymentValidationError: If the reference is empty or not XML-safe
            CredentialError: If live credentials are incomplete
        """
        credentials = CredentialResolver.from_config(self.config)
        try:
            query = StatusQuery(transaction_reference=pay_request_id or "", credentials=credentials)
        except ValidationError:
            raise PaymentValidationError(
                "Transaction reference cannot be empty",
                "pay_request_id",
            )
        return QueryRequestBuilder.build(query)

    async def get_query_result(self, pay_request_id: str) -> ParsedStatus:
        """
        Query the gateway for the final status of a payment.

        Raises:
            PaymentValidationError, CredentialError: Before any request is sent
            TransportError: If the gateway cannot be reached
            MalformedResponseError: If the response cannot be interpreted
        """
        body = self.prepare_query(pay_request_id)
        mode = "sandbox" if self.config.test_mode else "live"
        logger.info(f"Querying PayHOST ({mode}) for PayRequestId {pay_request_id}")

        response = await self.transport.post(self.config.endpoint, body)
        return ResponseParser.parse(response)
