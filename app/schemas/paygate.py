"""
Pydantic models for the PayHOST follow-up query and its reconciliation.
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PaymentOutcome(str, Enum):
    """Binary result of a follow-up query"""

    APPROVED = "approved"
    DECLINED = "declined"

    @classmethod
    def from_status_code(cls, status_code: int) -> "PaymentOutcome":
        # PayHOST TransactionStatusCode 1 means approved; every other code is not
        return cls.APPROVED if status_code == 1 else cls.DECLINED


class OrderState(str, Enum):
    NEW = "new"
    PENDING_PAYMENT = "pending_payment"
    PROCESSING = "processing"
    CANCELED = "canceled"


class Credentials(BaseModel):
    """PayGate account identifiers used for one query."""

    model_config = ConfigDict(frozen=True)

    account_id: str
    secret: str

    def __repr__(self) -> str:
        return f"Credentials(account_id={self.account_id!r}, secret='***')"

    __str__ = __repr__


class StatusQuery(BaseModel):
    """A single follow-up query for one PayRequestId."""

    model_config = ConfigDict(frozen=True)

    transaction_reference: str = Field(..., description="Gateway PayRequestId")
    credentials: Credentials

    @field_validator("transaction_reference")
    @classmethod
    def reference_not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("Transaction reference cannot be empty")
        return v


class QueryStatus(BaseModel):
    """Typed view of the Status object in a QueryResponse"""

    transaction_status_code: int
    transaction_status_description: Optional[str] = None
    result_code: Optional[str] = None
    result_description: Optional[str] = None
    pay_request_id: Optional[str] = None
    transaction_id: Optional[str] = None
    reference: Optional[str] = None
    status_name: Optional[str] = None
    auth_code: Optional[str] = None
    currency: Optional[str] = None
    amount: Optional[str] = None


class ParsedStatus(BaseModel):
    """Parsed follow-up response: the status code plus the full flattened body."""

    status_code: int
    status: QueryStatus
    raw: Dict[str, Any] = Field(default_factory=dict)

    @property
    def outcome(self) -> PaymentOutcome:
        return PaymentOutcome.from_status_code(self.status_code)


class TransactionRecord(BaseModel):
    """Capture record written once per applied reconciliation."""

    gateway_reference: str
    local_payment_id: str
    outcome: PaymentOutcome
    raw_details: Dict[str, Any] = Field(default_factory=dict)


class ReconcileResult(BaseModel):
    """What a reconcile call did to the order."""

    applied: bool
    outcome: Optional[PaymentOutcome] = None
    order_state: Optional[OrderState] = None
    transaction_id: Optional[str] = None
    invoiced: bool = False
    invoice_error: Optional[str] = None
