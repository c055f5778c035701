"""Operational and admin-only endpoints."""
