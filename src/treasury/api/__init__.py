"""HTTP surface of the treasury API."""

from treasury.api.app import create_app

__all__ = ["create_app"]
