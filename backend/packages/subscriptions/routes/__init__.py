"""Subscription API routes."""

from packages.subscriptions.routes import orders, subscriptions, webhooks

__all__ = ["orders", "subscriptions", "webhooks"]
