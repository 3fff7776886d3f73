"""Webhook delivery endpoint."""
