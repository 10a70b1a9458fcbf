import json

import httpx
import pytest

from app.gateway.transport import PayHostTransport
from scripts import query_status


@pytest.fixture
def gateway(monkeypatch):
    """Answer every PayHOST request from the given body"""

    def _gateway(response_text, status_code=200):
        def factory(paygate_config):
            return PayHostTransport(
                transport=httpx.MockTransport(lambda request: httpx.Response(status_code, text=response_text))
            )

        monkeypatch.setattr(PayHostTransport, "from_config", staticmethod(factory))

    return _gateway


class TestQueryStatusScript:
    @pytest.mark.asyncio
    async def test_prints_status(self, gateway, follow_up_response, capsys):
        gateway(follow_up_response("1"))

        exit_code = await query_status.main("PAY12345", sandbox=True)

        assert exit_code == 0
        output = json.loads(capsys.readouterr().out)
        assert output["status_code"] == 1
        assert output["outcome"] == "approved"
        assert output["status"]["pay_request_id"] == "PAY12345"

    @pytest.mark.asyncio
    async def test_live_mode_without_credentials(self, gateway, monkeypatch, capsys):
        monkeypatch.delenv("PAYGATE_ID", raising=False)
        monkeypatch.delenv("PAYGATE_ENCRYPTION_KEY", raising=False)
        monkeypatch.delenv("PAYGATE_TEST_MODE", raising=False)
        gateway("<unused/>")

        exit_code = await query_status.main("PAY12345", sandbox=False)

        assert exit_code == 1
        assert json.loads(capsys.readouterr().out)["error"] == "CredentialError"

    def test_sandbox_flag_forces_test_mode(self, monkeypatch):
        monkeypatch.setenv("PAYGATE_TEST_MODE", "false")

        assert query_status.load_paygate_config(sandbox=True).test_mode is True
        assert query_status.load_paygate_config(sandbox=False).test_mode is False
