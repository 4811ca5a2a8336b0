"""API key credential for the case service."""

import logging
from typing import Optional

from casebridge.config import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_KEY_NAME = "API-Key"


class APIKeyAuth:
    """API key authentication handler.

    The case service expects the key in an ``API-Key`` request header.
    """

    def __init__(self, api_key: Optional[str], key_name: str = DEFAULT_KEY_NAME):
        """Initialize API key auth.

        Args:
            api_key: The API key value
            key_name: Name of the header carrying the key

        Raises:
            ConfigurationError: If the key is missing
        """
        if not api_key:
            raise ConfigurationError("CASE_API_KEY is required")

        self.api_key = api_key
        self.key_name = key_name

        logger.debug(
            "APIKeyAuth initialized",
            extra={"key_name": key_name, "key": self.masked_key},
        )

    @property
    def masked_key(self) -> str:
        """Key with all but the last four characters hidden, for logs."""
        return "*" * max(0, len(self.api_key) - 4) + self.api_key[-4:]

    def get_auth_header(self) -> dict:
        return {self.key_name: self.api_key}
