"""
Provisioning engine: prober, actions, steps, pipeline.

    from stackconverge.core.engine import Action, Pipeline, StateProber, Step
"""

from stackconverge.core.engine.action import Action, Trigger, sequence
from stackconverge.core.engine.pipeline import (
    Pipeline,
    PipelineReport,
    generate_operation_id,
    validate_order,
)
from stackconverge.core.engine.prober import StateProber
from stackconverge.core.engine.step import Step, StepResult

__all__ = [
    "Action",
    "Pipeline",
    "PipelineReport",
    "StateProber",
    "Step",
    "StepResult",
    "Trigger",
    "generate_operation_id",
    "sequence",
    "validate_order",
]
