"""
Applies a parsed PayHOST follow-up status to an order.

Callers must make sure a given follow-up query is reconciled at most once and
must hold whatever lock the order store needs; the reconciler records a
transaction on every call that has a response to apply.
"""

from typing import Any, Optional

from app.core.exceptions import BaseAppError, IdempotencyError, ReconciliationError
from app.core.monitoring import error_monitor
from app.schemas.paygate import (
    OrderState,
    ParsedStatus,
    PaymentOutcome,
    ReconcileResult,
    TransactionRecord,
)
from app.services.interfaces import InvoicingService, OrderStore, TransactionRecorder
import logging

logger = logging.getLogger(__name__)

OUTCOME_STATES = {
    PaymentOutcome.APPROVED: OrderState.PROCESSING,
    PaymentOutcome.DECLINED: OrderState.CANCELED,
}


class StatusReconciler:
    """Maps a gateway status to an order state, invoice and transaction record"""

    def __init__(
        self,
        order_store: OrderStore,
        invoicing: InvoicingService,
        recorder: TransactionRecorder,
    ):
        self.order_store = order_store
        self.invoicing = invoicing
        self.recorder = recorder

    async def reconcile(self, order: Any, parsed: Optional[ParsedStatus]) -> ReconcileResult:
        """
        Apply the outcome of a follow-up query to an order.

        Args:
            order: Order whose payment was queried
            parsed: Parsed gateway response

        Returns:
            ReconcileResult; `applied` is False when there was nothing to apply

        Raises:
            ReconciliationError: If there is no PayRequestId to record against, or the
                order or the transaction record cannot be saved
        """
        if parsed is None or not parsed.raw:
            logger.warning(f"Empty follow-up response for order {order.order_id}, nothing applied")
            return ReconcileResult(applied=False)

        reference = order.payment.pay_request_id or parsed.status.pay_request_id
        if not reference:
            raise ReconciliationError(
                "No PayRequestId to record the payment against",
                order_id=order.order_id,
                stage="transaction_reference",
            )

        outcome = PaymentOutcome.from_status_code(parsed.status_code)
        state = OUTCOME_STATES[outcome]
        result = ReconcileResult(applied=True, outcome=outcome, order_state=state)

        await self._transition(order, state)

        if outcome is PaymentOutcome.APPROVED:
            try:
                await self.invoicing.capture_invoice(order)
                result.invoiced = True
            except Exception as e:
                # The payment outcome and record must survive a failed invoice or email
                logger.error(f"Invoicing failed for order {order.order_id}: {e}")
                error_monitor.log_error(e, {"operation": "capture_invoice", "order_id": order.order_id})
                result.invoice_error = str(e)

        record = TransactionRecord(
            gateway_reference=reference,
            local_payment_id=order.payment.payment_id,
            outcome=outcome,
            raw_details=parsed.raw,
        )
        result.transaction_id = await self._record(order, record)

        logger.info(
            f"Order {order.order_id} reconciled: status {parsed.status_code} -> "
            f"{outcome.value}, state {state.value}"
        )
        return result

    async def _transition(self, order: Any, state: OrderState) -> None:
        try:
            self.order_store.set_state(order, state)
            await self.order_store.save(order)
        except BaseAppError as e:
            raise ReconciliationError(
                f"Could not move order to {state.value}",
                order_id=order.order_id,
                stage="order_state",
            ) from e

    async def _record(self, order: Any, record: TransactionRecord) -> str:
        try:
            return await self.recorder.record(order, record)
        except (ReconciliationError, IdempotencyError):
            raise
        except BaseAppError as e:
            raise ReconciliationError(
                "Could not record payment transaction",
                order_id=order.order_id,
                stage="transaction_record",
            ) from e
