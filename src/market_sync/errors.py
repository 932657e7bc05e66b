"""
Error taxonomy for the sync and evaluation pipeline.

Per-item errors (transport, parse, store) are contained by the component
that hits them. Only ConfigurationError is meant to reach an operator.
"""
from __future__ import annotations

from typing import Optional


class PipelineError(Exception):
    """Base exception for pipeline errors."""


class TransportError(PipelineError):
    """Network or HTTP failure reaching the indexer, a metadata host or a provider."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ParseError(PipelineError):
    """Malformed event, metadata document or provider payload."""


class ValidationError(PipelineError):
    """Out-of-range or non-numeric value that could not be coerced."""


class StoreError(PipelineError):
    """Persistence failure in the record store."""


class ConfigurationError(PipelineError):
    """Missing credential or invalid setting. Fails fast, never retried."""
