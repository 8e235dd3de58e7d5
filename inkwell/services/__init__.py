"""Service layer for the AI generation pipeline."""

from __future__ import annotations

from .generation import (  # noqa: F401
    GenerationError,
    GenerationRequest,
    GenerationRequestError,
    GenerationResult,
    run_generation,
)

__all__ = [
    "GenerationError",
    "GenerationRequest",
    "GenerationRequestError",
    "GenerationResult",
    "run_generation",
]
