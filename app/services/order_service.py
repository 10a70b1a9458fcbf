"""
MongoDB-backed order store and transaction recorder.

Notes:
    - DatabaseError never wraps raw str(e) (could contain connection strings)
    - Duplicate txn_id on insert surfaces as IdempotencyError, not DatabaseError
    - A follow-up claims its PayRequestId (open transaction) before querying the
      gateway and closes the claim when the outcome is recorded
"""

from datetime import datetime, timezone
from typing import Optional

from pymongo.errors import DuplicateKeyError

from app.core.exceptions import DatabaseError, IdempotencyError, NotFoundError
from app.models import Order, PaymentTransaction
from app.schemas.paygate import OrderState, TransactionRecord
import logging

logger = logging.getLogger(__name__)

RAW_DETAILS = "raw_details"


def format_amount(order: Order) -> str:
    return f"{order.base_currency_code} {order.grand_total:,.2f}"


class MongoOrderStore:
    """Order persistence through Beanie"""

    async def get_order(self, order_id: str) -> Order:
        """
        Raises:
            NotFoundError: If no order has this id
            DatabaseError: If the lookup fails
        """
        try:
            order = await Order.find_one({"order_id": order_id})
        except Exception:
            logger.error(f"Database error loading order {order_id}", exc_info=True)
            raise DatabaseError("Failed to load order", operation="find_order")

        if not order:
            raise NotFoundError("Order", order_id)
        return order

    def set_state(self, order: Order, state: OrderState) -> None:
        # Status mirrors state for orders settled by a follow-up query
        order.state = state.value
        order.status = state.value

    async def save(self, order: Order) -> None:
        order.updated_at = datetime.now(timezone.utc)
        try:
            await order.save()
        except Exception:
            logger.error(f"Database error saving order {order.order_id}", exc_info=True)
            raise DatabaseError("Failed to save order", operation="save_order")


class MongoTransactionRecorder:
    """Stores the capture transaction for a reconciled payment"""

    async def claim(self, order: Order, gateway_reference: str) -> None:
        """
        Reserve a PayRequestId before the gateway is queried.

        Inserts an open transaction; the unique txn_id index lets exactly one
        concurrent follow-up through.

        Raises:
            IdempotencyError: If the reference is already claimed or recorded
            DatabaseError: If the claim cannot be stored
        """
        claim = PaymentTransaction(
            txn_id=gateway_reference,
            order_id=order.order_id,
            payment_id=order.payment.payment_id,
            is_closed=False,
        )
        try:
            await claim.insert()
        except DuplicateKeyError:
            logger.info(f"PayRequestId {gateway_reference} is already claimed")
            raise IdempotencyError(gateway_reference)
        except Exception:
            logger.error(f"Database error claiming transaction {gateway_reference}", exc_info=True)
            raise DatabaseError("Failed to claim transaction", operation="claim_transaction")

    async def release(self, gateway_reference: str) -> None:
        """Drop an open claim so the follow-up can be retried. Recorded transactions stay."""
        try:
            await PaymentTransaction.find_one(
                {"txn_id": gateway_reference, "is_closed": False}
            ).delete()
        except Exception:
            logger.error(f"Database error releasing transaction {gateway_reference}", exc_info=True)
            raise DatabaseError("Failed to release transaction", operation="release_transaction")

    async def record(self, order: Order, record: TransactionRecord) -> str:
        """
        Attach the gateway result to the order payment and store the transaction.

        Closes the open claim for the reference when there is one, otherwise
        inserts a new transaction.

        Returns:
            The stored transaction id (the PayRequestId)

        Raises:
            IdempotencyError: If a transaction for this reference is already recorded
            DatabaseError: If the order or transaction cannot be saved
        """
        try:
            transaction = await PaymentTransaction.find_one({"txn_id": record.gateway_reference})
        except Exception:
            logger.error(
                f"Database error retrieving transaction {record.gateway_reference}",
                exc_info=True,
            )
            raise DatabaseError("Failed to record transaction", operation="find_transaction")

        if transaction is not None and transaction.is_closed:
            raise IdempotencyError(record.gateway_reference)

        payment = order.payment
        payment.last_trans_id = record.gateway_reference
        payment.transaction_id = record.gateway_reference
        payment.parent_transaction_id = None
        payment.additional_information = {RAW_DETAILS: dict(record.raw_details)}

        if transaction is None:
            transaction = PaymentTransaction(
                txn_id=record.gateway_reference,
                order_id=order.order_id,
                payment_id=record.local_payment_id,
                outcome=record.outcome,
                raw_details=dict(record.raw_details),
            )
            write = transaction.insert
        else:
            transaction.payment_id = record.local_payment_id
            transaction.outcome = record.outcome
            transaction.raw_details = dict(record.raw_details)
            transaction.is_closed = True
            write = transaction.save

        try:
            await write()
        except DuplicateKeyError:
            logger.info(f"Duplicate transaction detected: {record.gateway_reference}")
            raise IdempotencyError(record.gateway_reference)
        except Exception:
            logger.error(
                f"Database error recording transaction {record.gateway_reference}",
                exc_info=True,
            )
            raise DatabaseError("Failed to record transaction", operation="insert_transaction")

        order.add_status_history_comment(f"The authorized amount is {format_amount(order)}.")
        try:
            await order.save()
        except Exception:
            logger.error(f"Database error saving order {order.order_id}", exc_info=True)
            raise DatabaseError("Failed to save order", operation="save_order")

        logger.info(
            f"Recorded {record.outcome.value} transaction {record.gateway_reference} "
            f"for order {order.order_id}"
        )
        return transaction.txn_id

    async def get_transaction_data(self, gateway_reference: str) -> Optional[PaymentTransaction]:
        """Recorded transaction for a PayRequestId, or None. Open claims are not returned."""
        try:
            return await PaymentTransaction.find_one({"txn_id": gateway_reference, "is_closed": True})
        except Exception:
            logger.error(
                f"Database error retrieving transaction {gateway_reference}",
                exc_info=True,
            )
            raise DatabaseError("Failed to retrieve transaction", operation="find_transaction")
