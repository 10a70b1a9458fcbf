"""
Invoice capture for approved payments, with optional customer notifications.
"""

import uuid
from typing import Optional

from app.core.config import PayGateConfig
from app.core.exceptions import DatabaseError
from app.models import Invoice, Order
from app.services.interfaces import Notifier
import logging

logger = logging.getLogger(__name__)


class LoggingNotifier:
    """Notifier that only logs; real email delivery is the store's concern."""

    def __init__(self, logger_name: str = "payhost.notifications"):
        self.logger = logging.getLogger(logger_name)

    async def send_order(self, order: Order) -> None:
        self.logger.info(f"Order confirmation queued for order #{order.order_id}")

    async def send_invoice(self, order: Order, invoice: Invoice) -> None:
        self.logger.info(f"Invoice #{invoice.invoice_id} queued for order #{order.order_id}")


class InvoiceService:
    """Registers an online-captured invoice for an order"""

    def __init__(self, config: PayGateConfig, notifier: Optional[Notifier] = None):
        self.config = config
        self.notifier = notifier or LoggingNotifier()

    async def capture_invoice(self, order: Order) -> Invoice:
        """
        Capture the order total and notify the customer where configured.

        `order_email` gates the order confirmation, `invoice_email` the invoice
        email. Either flag can be switched off without affecting the capture.

        Raises:
            DatabaseError: If the invoice or order cannot be saved
        """
        if self.config.get_config_data("order_email"):
            await self.notifier.send_order(order)
            order.add_status_history_comment(
                f"Notified customer about order #{order.order_id}.",
                is_customer_notified=True,
            )

        invoice = Invoice(
            invoice_id=f"INV-{order.order_id}-{uuid.uuid4().hex[:8].upper()}",
            order_id=order.order_id,
            grand_total=order.grand_total,
            currency=order.base_currency_code,
            transaction_id=order.payment.pay_request_id,
        )

        try:
            await invoice.insert()
            await order.save()
        except Exception:
            logger.error(f"Database error capturing invoice for order {order.order_id}", exc_info=True)
            raise DatabaseError("Failed to capture invoice", operation="capture_invoice")

        if self.config.get_config_data("invoice_email"):
            await self.notifier.send_invoice(order, invoice)
            order.add_status_history_comment(
                f"Notified customer about invoice #{invoice.invoice_id}.",
                is_customer_notified=True,
            )
            try:
                await order.save()
            except Exception:
                logger.error(f"Database error saving order {order.order_id}", exc_info=True)
                raise DatabaseError("Failed to save order", operation="save_order")

        logger.info(f"Captured invoice {invoice.invoice_id} for order {order.order_id}")
        return invoice
