"""HTTP API over the user's Google calendar."""

from leadcal.api.app import create_app

__all__ = ["create_app"]
