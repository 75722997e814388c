"""Billing API routes."""

from packages.billing.routes import internal

__all__ = ["internal"]
