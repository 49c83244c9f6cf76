"""Shared models, exceptions, utilities and the LLM transport."""
