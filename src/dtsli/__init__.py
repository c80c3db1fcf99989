"""Dynatrace SLI retrieval for keptn quality gates."""

__version__ = "0.1.0"
