"""Operator CLI wrapping KAPE collections."""
