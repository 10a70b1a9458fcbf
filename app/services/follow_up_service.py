"""
Follow-up query orchestration for orders paid through PayHOST.

This is the caller of the reconciliation core: it looks up the order, refuses
to reconcile a PayRequestId that already has a transaction record, claims the
PayRequestId so concurrent calls cannot both apply it, runs the gateway query
and hands the parsed status to the StatusReconciler.
"""

from typing import Optional

from app.core.config import AppConfig
from app.core.exceptions import BaseAppError, NotFoundError, PaymentValidationError
from app.core.monitoring import monitor_errors
from app.gateway.client import PayHostClient
from app.schemas.paygate import ParsedStatus, PaymentOutcome
from app.schemas.responses import FollowUpResponse, TransactionDetails, TransactionResponse
from app.services.interfaces import OrderStore, TransactionRecorder
from app.services.invoice_service import InvoiceService
from app.services.order_service import MongoOrderStore, MongoTransactionRecorder
from app.services.reconciler import StatusReconciler
import logging

logger = logging.getLogger(__name__)


class FollowUpService:
    """Service layer for PayHOST follow-up queries"""

    def __init__(
        self,
        client: PayHostClient,
        order_store: OrderStore,
        recorder: TransactionRecorder,
        reconciler: StatusReconciler,
    ):
        self.client = client
        self.order_store = order_store
        self.recorder = recorder
        self.reconciler = reconciler

    @classmethod
    def from_config(cls, config: AppConfig) -> "FollowUpService":
        """Wire the default MongoDB collaborators."""
        order_store = MongoOrderStore()
        recorder = MongoTransactionRecorder()
        return cls(
            client=PayHostClient(config.paygate),
            order_store=order_store,
            recorder=recorder,
            reconciler=StatusReconciler(order_store, InvoiceService(config.paygate), recorder),
        )

    async def query_status(self, pay_request_id: str) -> ParsedStatus:
        """Query the gateway without touching any order."""
        return await self.client.get_query_result(pay_request_id)

    @monitor_errors("paygate_follow_up")
    async def follow_up(self, order_id: str) -> FollowUpResponse:
        """
        Query PayHOST for an order's payment and apply the result once.

        Args:
            order_id: Local order identifier

        Returns:
            FollowUpResponse describing what was applied

        Raises:
            NotFoundError: If the order does not exist
            PaymentValidationError: If the order has no PayRequestId
            TransportError, MalformedResponseError: If the gateway query fails
            ReconciliationError: If the outcome cannot be stored
            IdempotencyError: If a concurrent call holds the claim on the same reference
        """
        order = await self.order_store.get_order(order_id)
        reference = self._reference_for(order)

        existing = await self.recorder.get_transaction_data(reference)
        if existing:
            logger.info(f"PayRequestId {reference} already reconciled for order {order_id}")
            return FollowUpResponse(
                success=True,
                message="Payment was previously reconciled",
                status="duplicate",
                order_id=order_id,
                pay_request_id=reference,
                outcome=existing.outcome,
            )

        # Only one concurrent follow-up gets past the claim
        await self.recorder.claim(order, reference)
        try:
            parsed = await self.query_status(reference)
            result = await self.reconciler.reconcile(order, parsed)
        except Exception:
            await self._release(reference)
            raise

        if not result.applied:
            await self._release(reference)
            return FollowUpResponse(
                success=False,
                message="Gateway returned no status to apply",
                status="ignored",
                order_id=order_id,
                pay_request_id=reference,
            )

        if result.outcome is PaymentOutcome.DECLINED:
            message = "Payment not approved, order canceled"
        elif result.invoice_error:
            message = "Payment approved; invoice capture failed and needs attention"
        else:
            message = "Payment approved"

        return FollowUpResponse(
            success=True,
            message=message,
            status=result.outcome.value,
            order_id=order_id,
            pay_request_id=reference,
            outcome=result.outcome,
            order_state=result.order_state,
            transaction_status_code=parsed.status_code,
            transaction_status_description=parsed.status.transaction_status_description,
            invoiced=result.invoiced,
        )

    async def get_transaction(self, order_id: str) -> TransactionResponse:
        """
        Raises:
            NotFoundError: If the order or its transaction does not exist
        """
        order = await self.order_store.get_order(order_id)
        reference = self._reference_for(order)

        transaction = await self.recorder.get_transaction_data(reference)
        if not transaction:
            raise NotFoundError("Transaction", reference)

        return TransactionResponse(
            success=True,
            message="Transaction found successfully",
            status="found",
            transaction=TransactionDetails(
                txn_id=transaction.txn_id,
                order_id=transaction.order_id,
                payment_id=transaction.payment_id,
                txn_type=transaction.txn_type,
                outcome=transaction.outcome,
                raw_details=transaction.raw_details,
                created_at=transaction.created_at,
            ),
        )

    async def _release(self, reference: str) -> None:
        try:
            await self.recorder.release(reference)
        except BaseAppError as e:
            logger.error(f"Could not release claim on PayRequestId {reference}: {e.message}")

    @staticmethod
    def _reference_for(order) -> str:
        reference: Optional[str] = order.payment.pay_request_id if order.payment else None
        if not reference or not reference.strip():
            raise PaymentValidationError(
                f"Order {order.order_id} has no PayGate PayRequestId",
                "pay_request_id",
            )
        return reference.strip()
