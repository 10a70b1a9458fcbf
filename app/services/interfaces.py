"""
Collaborators the reconciliation flow depends on.

The order store, invoicing and notification concerns belong to the commerce
back-end; the reconciler only sees these protocols. Default MongoDB-backed
implementations live in order_service.py and invoice_service.py.
"""

from typing import Any, Optional, Protocol

from app.schemas.paygate import OrderState, TransactionRecord


class OrderStore(Protocol):
    async def get_order(self, order_id: str) -> Any: ...

    def set_state(self, order: Any, state: OrderState) -> None: ...

    async def save(self, order: Any) -> None: ...


class InvoicingService(Protocol):
    async def capture_invoice(self, order: Any) -> Any: ...


class TransactionRecorder(Protocol):
    async def claim(self, order: Any, gateway_reference: str) -> None: ...

    async def release(self, gateway_reference: str) -> None: ...

    async def record(self, order: Any, record: TransactionRecord) -> str: ...

    async def get_transaction_data(self, gateway_reference: str) -> Optional[Any]: ...


class Notifier(Protocol):
    async def send_order(self, order: Any) -> None: ...

    async def send_invoice(self, order: Any, invoice: Any) -> None: ...
