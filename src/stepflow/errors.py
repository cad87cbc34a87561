"""Error types raised by the workflow engine."""

from __future__ import annotations


class StepflowError(Exception):
    """Base class for workflow engine errors."""


class ConfigValidationError(StepflowError, ValueError):
    """A workflow document or step configuration is invalid."""


class DependencyError(StepflowError, ValueError):
    """A step input cannot be resolved."""


class ProviderError(StepflowError, RuntimeError):
    """A provider gateway call failed."""


class MemoryStoreError(StepflowError, RuntimeError):
    """The memory document cannot be loaded or persisted."""
