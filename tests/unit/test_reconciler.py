import pytest

from app.core.exceptions import (
    DatabaseError,
    IdempotencyError,
    ReconciliationError,
)
from app.schemas.paygate import OrderState, ParsedStatus, PaymentOutcome, QueryStatus
from app.services.reconciler import StatusReconciler


class FailingInvoicing:
    def __init__(self, error):
        self.error = error

    async def capture_invoice(self, order):
        raise self.error


class FailingRecorder:
    def __init__(self, error):
        self.error = error

    async def record(self, order, record):
        raise self.error

    async def get_transaction_data(self, gateway_reference):
        return None


class TestStatusReconciler:
    """Order state, invoice and record for each gateway outcome"""

    @pytest.mark.asyncio
    async def test_approved(self, reconciler, order, order_store, recorder, invoicing, parsed_status):
        result = await reconciler.reconcile(order, parsed_status(1))

        assert result.applied is True
        assert result.outcome == PaymentOutcome.APPROVED
        assert result.order_state == OrderState.PROCESSING
        assert result.invoiced is True
        assert result.transaction_id == "PAY12345"
        assert order.state == "processing"
        assert order_store.saved_states == ["processing"]
        assert invoicing.captured == [order.order_id]
        assert len(recorder.records) == 1
        record = recorder.records[0]
        assert record.outcome == PaymentOutcome.APPROVED
        assert record.gateway_reference == "PAY12345"
        assert record.local_payment_id == "pay_100000123"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [2, 0, -1, 4])
    async def test_not_approved(self, status_code, reconciler, order, recorder, invoicing, parsed_status):
        result = await reconciler.reconcile(order, parsed_status(status_code))

        assert result.outcome == PaymentOutcome.DECLINED
        assert result.order_state == OrderState.CANCELED
        assert result.invoiced is False
        assert order.state == "canceled"
        assert invoicing.captured == []
        assert [r.outcome for r in recorder.records] == [PaymentOutcome.DECLINED]

    @pytest.mark.asyncio
    async def test_raw_details_stored_verbatim(self, reconciler, order, recorder, parsed_status):
        parsed = parsed_status(1)

        await reconciler.reconcile(order, parsed)

        assert recorder.records[0].raw_details == parsed.raw

    @pytest.mark.asyncio
    async def test_reference_falls_back_to_response(self, reconciler, order, recorder, parsed_status):
        order.payment.pay_request_id = None

        await reconciler.reconcile(order, parsed_status(1))

        assert recorder.records[0].gateway_reference == "PAY12345"

    @pytest.mark.asyncio
    async def test_missing_response_changes_nothing(self, reconciler, order, order_store, recorder):
        result = await reconciler.reconcile(order, None)

        assert result.applied is False
        assert order.state == "pending_payment"
        assert order_store.saved_states == []
        assert recorder.records == []

    @pytest.mark.asyncio
    async def test_empty_body_changes_nothing(self, reconciler, order, order_store, recorder, parsed_status):
        result = await reconciler.reconcile(order, parsed_status(1, raw={}))

        assert result.applied is False
        assert order_store.saved_states == []
        assert recorder.records == []


class TestReconcilerFailures:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [RuntimeError("smtp down"), DatabaseError("insert failed")])
    async def test_invoice_failure_keeps_outcome(self, error, order, order_store, recorder, parsed_status):
        reconciler = StatusReconciler(order_store, FailingInvoicing(error), recorder)

        result = await reconciler.reconcile(order, parsed_status(1))

        assert result.outcome == PaymentOutcome.APPROVED
        assert result.invoiced is False
        assert result.invoice_error
        assert order.state == "processing"
        assert len(recorder.records) == 1

    @pytest.mark.asyncio
    async def test_order_save_failure(self, order, recorder, invoicing, parsed_status):
        class BrokenStore:
            def set_state(self, order, state):
                order.state = state.value

            async def save(self, order):
                raise DatabaseError("Failed to save order", operation="save_order")

        reconciler = StatusReconciler(BrokenStore(), invoicing, recorder)

        with pytest.raises(ReconciliationError) as exc_info:
            await reconciler.reconcile(order, parsed_status(2))

        assert exc_info.value.stage == "order_state"
        assert exc_info.value.order_id == order.order_id
        assert recorder.records == []

    @pytest.mark.asyncio
    async def test_record_failure(self, order, order_store, invoicing, parsed_status):
        recorder = FailingRecorder(DatabaseError("insert failed", operation="insert_transaction"))
        reconciler = StatusReconciler(order_store, invoicing, recorder)

        with pytest.raises(ReconciliationError) as exc_info:
            await reconciler.reconcile(order, parsed_status(1))

        assert exc_info.value.stage == "transaction_record"
        assert isinstance(exc_info.value.__cause__, DatabaseError)

    @pytest.mark.asyncio
    async def test_duplicate_record_propagates(self, reconciler, order, recorder, parsed_status):
        await reconciler.reconcile(order, parsed_status(1))

        with pytest.raises(IdempotencyError) as exc_info:
            await reconciler.reconcile(order, parsed_status(1))

        assert exc_info.value.reference == "PAY12345"
        assert len(recorder.records) == 1

    @pytest.mark.asyncio
    async def test_no_reference_anywhere_changes_nothing(self, reconciler, order, order_store, recorder, invoicing):
        order.payment.pay_request_id = None
        parsed = ParsedStatus(
            status_code=1,
            status=QueryStatus(transaction_status_code=1),
            raw={"SingleFollowUpResponse": {"QueryResponse": {"Status": {"TransactionStatusCode": "1"}}}},
        )

        with pytest.raises(ReconciliationError) as exc_info:
            await reconciler.reconcile(order, parsed)

        assert exc_info.value.stage == "transaction_reference"
        assert order.state == "pending_payment"
        assert order_store.saved_states == []
        assert invoicing.captured == []
        assert recorder.records == []
