"""
Selection of the PayGate account used for a follow-up query.
"""

from app.core.exceptions import CredentialError
from app.schemas.paygate import Credentials
import logging

logger = logging.getLogger(__name__)

# Public PayGate test account, only valid against the gateway's test environment
SANDBOX_PAYGATE_ID = "10011072130"
SANDBOX_PASSWORD = "test"


class CredentialResolver:
    """Picks sandbox or live credentials. Performs no I/O."""

    @staticmethod
    def resolve(is_sandbox_mode: bool, configured_id: str, configured_secret: str) -> Credentials:
        """
        Return the credentials to embed in a query.

        Args:
            is_sandbox_mode: Use the public test account instead of the configured one
            configured_id: PayGate ID from configuration
            configured_secret: Encryption key (account password) from configuration

        Raises:
            CredentialError: In live mode, if either configured value is empty
        """
        if is_sandbox_mode:
            return Credentials(account_id=SANDBOX_PAYGATE_ID, secret=SANDBOX_PASSWORD)

        missing = []
        if not configured_id or not configured_id.strip():
            missing.append("paygate_id")
        if not configured_secret:
            missing.append("encryption_key")

        if missing:
            logger.error(f"Live PayGate credentials incomplete: missing {', '.join(missing)}")
            raise CredentialError("PayGate credentials are incomplete", missing_fields=missing)

        return Credentials(account_id=configured_id, secret=configured_secret)

    @classmethod
    def from_config(cls, paygate_config) -> Credentials:
        """Resolve using a PayGateConfig-like source (get_config_data lookup)."""
        return cls.resolve(
            bool(paygate_config.get_config_data("test_mode")),
            paygate_config.get_config_data("paygate_id"),
            paygate_config.get_config_data("encryption_key"),
        )
