"""Billing queue workers."""
