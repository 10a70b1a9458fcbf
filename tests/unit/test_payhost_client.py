import httpx
import pytest

from app.core.config import PayGateConfig
from app.core.exceptions import (
    CredentialError,
    MalformedResponseError,
    PaymentValidationError,
    TransportError,
)
from app.gateway.client import PayHostClient
from app.gateway.transport import PayHostTransport

PAYHOST_URL = "https://secure.paygate.co.za/payhost/process.trans"


def _client(config, handler, requests):
    def recording_handler(request):
        requests.append(request)
        return handler(request)

    return PayHostClient(config, transport=PayHostTransport(transport=httpx.MockTransport(recording_handler)))


class TestPayHostClient:
    @pytest.mark.asyncio
    async def test_sandbox_query(self, sandbox_config, follow_up_response):
        requests = []
        client = _client(sandbox_config, lambda r: httpx.Response(200, text=follow_up_response()), requests)

        parsed = await client.get_query_result("PAY12345")

        assert parsed.status_code == 1
        assert len(requests) == 1
        body = requests[0].content.decode("utf-8")
        assert "<PayGateId>10011072130</PayGateId>" in body
        assert "<Password>test</Password>" in body
        assert "<PayRequestId>PAY12345</PayRequestId>" in body
        assert str(requests[0].url) == PAYHOST_URL

    @pytest.mark.asyncio
    async def test_live_query_escapes_secret(self, live_config, follow_up_response):
        requests = []
        client = _client(live_config, lambda r: httpx.Response(200, text=follow_up_response("2", "Declined")), requests)

        parsed = await client.get_query_result("PAY12345")

        assert parsed.status_code == 2
        body = requests[0].content.decode("utf-8")
        assert "<PayGateId>10011000001</PayGateId>" in body
        assert "<Password>s3cr3t&amp;key</Password>" in body

    @pytest.mark.asyncio
    @pytest.mark.parametrize("paygate_id,key", [("", "key"), ("10011000001", ""), ("", "")])
    async def test_incomplete_live_credentials_send_nothing(self, paygate_id, key):
        requests = []
        config = PayGateConfig(paygate_id=paygate_id, encryption_key=key, endpoint=PAYHOST_URL)
        client = _client(config, lambda r: httpx.Response(200), requests)

        with pytest.raises(CredentialError):
            await client.get_query_result("PAY12345")

        assert requests == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reference", ["", "   ", None, "PAY\x00"])
    async def test_invalid_reference_sends_nothing(self, sandbox_config, reference):
        requests = []
        client = _client(sandbox_config, lambda r: httpx.Response(200), requests)

        with pytest.raises(PaymentValidationError) as exc_info:
            await client.get_query_result(reference)

        assert exc_info.value.field == "pay_request_id"
        assert requests == []

    @pytest.mark.asyncio
    async def test_gateway_error_status(self, sandbox_config):
        client = _client(sandbox_config, lambda r: httpx.Response(503, text="down"), [])

        with pytest.raises(TransportError):
            await client.get_query_result("PAY12345")

    @pytest.mark.asyncio
    async def test_unparseable_response(self, sandbox_config):
        client = _client(sandbox_config, lambda r: httpx.Response(200, text="<html>oops"), [])

        with pytest.raises(MalformedResponseError):
            await client.get_query_result("PAY12345")

    def test_prepare_query_is_pure(self, sandbox_config):
        client = PayHostClient(sandbox_config)

        assert client.prepare_query("PAY1") == client.prepare_query("PAY1")
