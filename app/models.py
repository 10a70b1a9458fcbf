from beanie import Document, Indexed
from pydantic import BaseModel, Field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from app.schemas.paygate import OrderState, PaymentOutcome


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StatusHistoryEntry(BaseModel):
    """Comment attached to an order's history"""

    comment: str
    is_customer_notified: bool = False
    created_at: datetime = Field(default_factory=_utcnow)


class OrderPayment(BaseModel):
    """Payment embedded in an order; pay_request_id is the PayHOST reference"""

    payment_id: str
    method: str = "paygate_payhost"
    pay_request_id: Optional[str] = None
    last_trans_id: Optional[str] = None
    transaction_id: Optional[str] = None
    parent_transaction_id: Optional[str] = None
    additional_information: Dict[str, Any] = Field(default_factory=dict)


class Order(Document):
    """Order document; only the fields the follow-up flow touches"""

    order_id: Indexed(str, unique=True)
    state: Indexed(str) = OrderState.PENDING_PAYMENT.value
    status: str = OrderState.PENDING_PAYMENT.value
    grand_total: float
    base_currency_code: str = "ZAR"
    customer_email: Optional[str] = None
    customer_notified: bool = False
    payment: OrderPayment
    status_history: List[StatusHistoryEntry] = Field(default_factory=list)
    updated_at: datetime = Field(default_factory=_utcnow)

    class Settings:
        name = "orders"

    def add_status_history_comment(self, comment: str, is_customer_notified: bool = False) -> None:
        self.status_history.append(
            StatusHistoryEntry(comment=comment, is_customer_notified=is_customer_notified)
        )
        if is_customer_notified:
            self.customer_notified = True


# Unique txn_id: a second claim or record for the same PayRequestId fails on insert.
# An open transaction (is_closed False, no outcome) is a claim held by a follow-up in flight.
class PaymentTransaction(Document):
    """Capture transaction recorded after a follow-up query"""

    txn_id: Indexed(str, unique=True)
    order_id: Indexed(str)
    payment_id: Indexed(str)
    txn_type: str = "capture"
    outcome: Optional[PaymentOutcome] = None
    raw_details: Dict[str, Any] = Field(default_factory=dict)
    parent_txn_id: Optional[str] = None
    is_closed: bool = True
    created_at: Indexed(datetime) = Field(default_factory=_utcnow)

    class Settings:
        name = "payment_transactions"


class Invoice(Document):
    """Invoice registered when an approved payment is captured"""

    invoice_id: Indexed(str, unique=True)
    order_id: Indexed(str)
    grand_total: float
    currency: str
    capture_case: str = "online"
    state: str = "paid"
    transaction_id: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)

    class Settings:
        name = "invoices"
