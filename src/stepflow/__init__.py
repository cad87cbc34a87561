"""Public package exports."""

from stepflow.errors import ConfigValidationError
from stepflow.errors import DependencyError
from stepflow.errors import MemoryStoreError
from stepflow.errors import ProviderError
from stepflow.errors import StepflowError
from stepflow.input_adaptors import FileInput
from stepflow.input_adaptors import InputAdaptor
from stepflow.input_adaptors import TextInput
from stepflow.memory import MemoryManager
from stepflow.orchestrator import Orchestrator
from stepflow.processor import WorkflowProcessor
from stepflow.workflow_loader import load_workflow
from stepflow.workflow_loader import parse_workflow

__all__ = [
    "ConfigValidationError",
    "DependencyError",
    "FileInput",
    "InputAdaptor",
    "MemoryManager",
    "MemoryStoreError",
    "Orchestrator",
    "ProviderError",
    "StepflowError",
    "TextInput",
    "WorkflowProcessor",
    "load_workflow",
    "parse_workflow",
]
