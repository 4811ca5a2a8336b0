"""Authentication for the case service API."""

from .api_key import APIKeyAuth

__all__ = ["APIKeyAuth"]
