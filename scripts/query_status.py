"""
Run a single PayHOST follow-up query and print the parsed status.

Usage:
    python scripts/query_status.py <PayRequestId> [--sandbox]

Credentials come from PAYGATE_ID / PAYGATE_ENCRYPTION_KEY unless --sandbox
(or PAYGATE_TEST_MODE=true) selects the public test account. Orders are not
touched.
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import replace

from dotenv import load_dotenv

from app.core.config import ConfigValidator
from app.core.exceptions import BaseAppError
from app.gateway.client import PayHostClient

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

load_dotenv()


def load_paygate_config(sandbox: bool):
    env_vars = {
        name: os.getenv(name, default)
        for name, default in ConfigValidator.OPTIONAL_ENV_VARS.items()
    }
    config = ConfigValidator.load_paygate_config(env_vars)
    return replace(config, test_mode=True) if sandbox else config


async def main(pay_request_id: str, sandbox: bool) -> int:
    client = PayHostClient(load_paygate_config(sandbox))

    try:
        parsed = await client.get_query_result(pay_request_id)
    except BaseAppError as e:
        logger.error(f"Query failed: {e.message}")
        print(json.dumps(e.to_safe_dict(), indent=2))
        return 1

    print(json.dumps(
        {
            "status_code": parsed.status_code,
            "outcome": parsed.outcome.value,
            "status": parsed.status.model_dump(exclude_none=True),
        },
        indent=2,
    ))
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="PayHOST follow-up query")
    parser.add_argument("pay_request_id", help="PayRequestId returned by the gateway")
    parser.add_argument("--sandbox", action="store_true", help="Use the PayGate test account")
    args = parser.parse_args()

    sys.exit(asyncio.run(main(args.pay_request_id, args.sandbox)))
