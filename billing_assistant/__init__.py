"""Billing support assistant: in-band authentication, routing and human handoff."""
