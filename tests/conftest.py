import pytest
import httpx
from types import SimpleNamespace
from fastapi.testclient import TestClient

from app.core.config import AppConfig, DatabaseConfig, LoggingConfig, PayGateConfig, RateLimitConfig
from app.core.exceptions import DatabaseError, IdempotencyError, NotFoundError
from app.core.limiter import limiter
from app.gateway.client import PayHostClient
from app.gateway.transport import PayHostTransport
from app.main import app
from app.schemas.paygate import ParsedStatus, QueryStatus
from app.services.follow_up_service import FollowUpService
from app.services.reconciler import StatusReconciler

PAY_REQUEST_ID = "PAY12345"
ORDER_ID = "100000123"
ADMIN_API_KEY = "test_admin_key"
PAYHOST_URL = "https://secure.paygate.co.za/payhost/process.trans"


def build_follow_up_response(
    status_code="1",
    description="Approved",
    pay_request_id=PAY_REQUEST_ID,
    prefix="ns2",
):
    """PayHOST SingleFollowUpResponse as the gateway sends it"""
    p = f"{prefix}:" if prefix else ""
    ns_decl = f' xmlns:{prefix}="http://www.paygate.co.za/PayHOST"' if prefix else ' xmlns="http://www.paygate.co.za/PayHOST"'
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<SOAP-ENV:Envelope xmlns:SOAP-ENV="http://schemas.xmlsoap.org/soap/envelope/">'
        "<SOAP-ENV:Header/>"
        "<SOAP-ENV:Body>"
        f"<{p}SingleFollowUpResponse{ns_decl}>"
        f"<{p}QueryResponse>"
        f"<{p}Status>"
        f"<{p}TransactionId>177340513</{p}TransactionId>"
        f"<{p}Reference>{ORDER_ID}</{p}Reference>"
        f"<{p}AcquirerCode>00</{p}AcquirerCode>"
        f"<{p}StatusName>Completed</{p}StatusName>"
        f"<{p}AuthCode>5T8A0Z</{p}AuthCode>"
        f"<{p}PayRequestId>{pay_request_id}</{p}PayRequestId>"
        f"<{p}TransactionStatusCode>{status_code}</{p}TransactionStatusCode>"
        f"<{p}TransactionStatusDescription>{description}</{p}TransactionStatusDescription>"
        f"<{p}ResultCode>990017</{p}ResultCode>"
        f"<{p}ResultDescription>Auth Done</{p}ResultDescription>"
        f"<{p}Currency>ZAR</{p}Currency>"
        f"<{p}Amount>10050</{p}Amount>"
        f"<{p}PaymentType><{p}Method>CC</{p}Method><{p}Detail>Visa</{p}Detail></{p}PaymentType>"
        f"</{p}Status>"
        f"</{p}QueryResponse>"
        f"</{p}SingleFollowUpResponse>"
        "</SOAP-ENV:Body>"
        "</SOAP-ENV:Envelope>"
    )


def make_parsed_status(status_code=1, raw=None):
    if raw is None:
        raw = {"ns2SingleFollowUpResponse": {"ns2QueryResponse": {"ns2Status": {
            "ns2TransactionStatusCode": str(status_code),
            "ns2PayRequestId": PAY_REQUEST_ID,
        }}}}
    return ParsedStatus(
        status_code=status_code,
        status=QueryStatus(transaction_status_code=status_code, pay_request_id=PAY_REQUEST_ID),
        raw=raw,
    )


def make_order(order_id=ORDER_ID, pay_request_id=PAY_REQUEST_ID, state="pending_payment"):
    return SimpleNamespace(
        order_id=order_id,
        state=state,
        status=state,
        grand_total=100.50,
        base_currency_code="ZAR",
        payment=SimpleNamespace(payment_id=f"pay_{order_id}", pay_request_id=pay_request_id),
    )


class InMemoryOrderStore:
    """OrderStore keeping orders in a dict"""

    def __init__(self, orders=(), fail_save=False):
        self.orders = {order.order_id: order for order in orders}
        self.fail_save = fail_save
        self.saved_states = []

    async def get_order(self, order_id):
        if order_id not in self.orders:
            raise NotFoundError("Order", order_id)
        return self.orders[order_id]

    def set_state(self, order, state):
        order.state = state.value
        order.status = state.value

    async def save(self, order):
        if self.fail_save:
            raise DatabaseError("Failed to save order", operation="save_order")
        self.saved_states.append(order.state)


class InMemoryRecorder:
    """TransactionRecorder with the same uniqueness rule as the txn_id index"""

    def __init__(self, fail=False):
        self.records = []
        self.claims = set()
        self.released = []
        self.fail = fail

    def _recorded(self, reference):
        return any(r.gateway_reference == reference for r in self.records)

    async def claim(self, order, gateway_reference):
        if gateway_reference in self.claims or self._recorded(gateway_reference):
            raise IdempotencyError(gateway_reference)
        self.claims.add(gateway_reference)

    async def release(self, gateway_reference):
        self.claims.discard(gateway_reference)
        self.released.append(gateway_reference)

    async def record(self, order, record):
        if self.fail:
            raise DatabaseError("Failed to record transaction", operation="insert_transaction")
        if self._recorded(record.gateway_reference):
            raise IdempotencyError(record.gateway_reference)
        self.records.append(record)
        self.claims.discard(record.gateway_reference)
        return record.gateway_reference

    async def get_transaction_data(self, gateway_reference):
        for r in self.records:
            if r.gateway_reference == gateway_reference:
                return SimpleNamespace(
                    txn_id=r.gateway_reference,
                    order_id=ORDER_ID,
                    payment_id=r.local_payment_id,
                    txn_type="capture",
                    outcome=r.outcome,
                    raw_details=r.raw_details,
                    created_at=None,
                )
        return None


class FakeInvoicing:
    def __init__(self, error=None):
        self.error = error
        self.captured = []

    async def capture_invoice(self, order):
        if self.error:
            raise self.error
        self.captured.append(order.order_id)
        return SimpleNamespace(invoice_id=f"INV-{order.order_id}")


def mock_gateway(response_text=None, status_code=200, handler=None, requests=None):
    """PayHostTransport answering from memory; records requests if a list is given"""

    def default_handler(request):
        if requests is not None:
            requests.append(request)
        return httpx.Response(status_code, text=response_text or "")

    return PayHostTransport(transport=httpx.MockTransport(handler or default_handler))


@pytest.fixture
def sandbox_config():
    return PayGateConfig(test_mode=True, endpoint=PAYHOST_URL)


@pytest.fixture
def live_config():
    return PayGateConfig(paygate_id="10011000001", encryption_key="s3cr3t&key", endpoint=PAYHOST_URL)


@pytest.fixture
def order():
    return make_order()


@pytest.fixture
def order_store(order):
    return InMemoryOrderStore([order])


@pytest.fixture
def recorder():
    return InMemoryRecorder()


@pytest.fixture
def invoicing():
    return FakeInvoicing()


@pytest.fixture
def reconciler(order_store, invoicing, recorder):
    return StatusReconciler(order_store, invoicing, recorder)


@pytest.fixture
def gateway_requests():
    return []


@pytest.fixture
def build_service(sandbox_config, order_store, recorder, reconciler, gateway_requests):
    """Factory for a FollowUpService whose gateway answers with the given body"""

    def _build(response_text=None, status_code=200, handler=None):
        transport = mock_gateway(response_text, status_code, handler, gateway_requests)
        return FollowUpService(
            client=PayHostClient(sandbox_config, transport=transport),
            order_store=order_store,
            recorder=recorder,
            reconciler=reconciler,
        )

    return _build


@pytest.fixture
def loaded_config(monkeypatch, sandbox_config):
    """Install an AppConfig as the loaded configuration: loaded_config(rate_limit=..., logging=...)"""

    def _load(rate_limit=None, logging=None):
        config = AppConfig(
            database=DatabaseConfig(url="mongodb://localhost:27017/payhost"),
            paygate=sandbox_config,
            rate_limit=rate_limit or RateLimitConfig(),
            logging=logging or LoggingConfig(),
        )
        monkeypatch.setattr("app.core.config._app_config", config)
        return config

    return _load


@pytest.fixture
def client():
    """FastAPI TestClient; lifespan (config + database) is not started"""
    limiter.reset()
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers(monkeypatch):
    monkeypatch.setenv("ADMIN_API_KEY", ADMIN_API_KEY)
    return {"X-API-Key": ADMIN_API_KEY}


@pytest.fixture
def follow_up_response():
    """Builder for gateway responses: follow_up_response(status_code="2")"""
    return build_follow_up_response


@pytest.fixture
def parsed_status():
    return make_parsed_status
