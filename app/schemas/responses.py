"""
Pydantic response models for the service layer.

Service layer returns these models, FastAPI handles JSON serialization.
"""

from pydantic import BaseModel, Field
from typing import Any, Dict, Optional
from datetime import datetime

from app.schemas.paygate import OrderState, PaymentOutcome


class ServiceResult(BaseModel):
    """Generic base class for all service responses."""

    success: bool = Field(..., description="Whether the operation was successful")
    message: str = Field(..., description="Human-readable result message")


class FollowUpResponse(ServiceResult):
    """Result of a follow-up query for one order."""

    status: str = Field(
        ...,
        description="'approved', 'declined', 'ignored' (empty response) or 'duplicate'",
    )
    order_id: str = Field(..., description="Local order identifier")
    pay_request_id: str = Field(..., description="PayHOST PayRequestId that was queried")
    outcome: Optional[PaymentOutcome] = Field(None, description="Payment outcome applied")
    order_state: Optional[OrderState] = Field(None, description="Order state after reconciliation")
    transaction_status_code: Optional[int] = Field(None, description="Gateway TransactionStatusCode")
    transaction_status_description: Optional[str] = Field(None, description="Gateway status text")
    invoiced: bool = Field(False, description="Whether an invoice was captured")


class TransactionDetails(BaseModel):
    """Stored transaction embedded in responses."""

    txn_id: str = Field(..., description="PayRequestId the transaction was recorded for")
    order_id: str = Field(..., description="Local order identifier")
    payment_id: str = Field(..., description="Local payment identifier")
    txn_type: str = Field(..., description="Transaction type, 'capture'")
    outcome: PaymentOutcome = Field(..., description="Recorded payment outcome")
    raw_details: Dict[str, Any] = Field(default_factory=dict, description="Gateway response body")
    created_at: Optional[datetime] = Field(None, description="When the record was stored")


class TransactionResponse(ServiceResult):
    """Response model for transaction retrieval."""

    status: str = Field(..., description="Retrieval status: 'found'")
    transaction: TransactionDetails = Field(..., description="Transaction details")
