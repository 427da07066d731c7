"""Canonical content records and the primary store boundary."""
