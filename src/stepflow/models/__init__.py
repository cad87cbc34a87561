"""Model types for workflow configuration and runtime."""

from stepflow.models.chunk_config import ChunkConfig
from stepflow.models.dispatch_payload import DispatchPayload
from stepflow.models.generate_step_config import GenerateStepConfig
from stepflow.models.performance_metrics import PerformanceMetrics
from stepflow.models.process_step_config import ProcessStepConfig
from stepflow.models.processed_input import ProcessedInput
from stepflow.models.prompt_options import PromptOptions
from stepflow.models.provider_settings import ProviderSettings
from stepflow.models.step import Step
from stepflow.models.step_config import StepConfig
from stepflow.models.workflow_plan import ParallelGroup, WorkflowPlan

__all__ = [
    "ChunkConfig",
    "DispatchPayload",
    "GenerateStepConfig",
    "ParallelGroup",
    "PerformanceMetrics",
    "ProcessStepConfig",
    "ProcessedInput",
    "PromptOptions",
    "ProviderSettings",
    "Step",
    "StepConfig",
    "WorkflowPlan",
]
