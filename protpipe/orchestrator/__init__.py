"""
Orchestrator: runs the two DIA-NN stages

Library build, then sample analysis, each skipped when its marker file exists
"""
from protpipe.orchestrator.pipeline import Pipeline, PipelineResult
from protpipe.orchestrator.stage_runner import StageExecutor, StageResult, StageStatus, SubprocessRunner
from protpipe.orchestrator.stages import StagePlanner, TimeSleeper, stage_defaults

__all__ = [
    "Pipeline",
    "PipelineResult",
    "StageExecutor",
    "StageResult",
    "StageStatus",
    "SubprocessRunner",
    "StagePlanner",
    "TimeSleeper",
    "stage_defaults",
]
