"""Pipeline orchestrators for AdBurst."""

from adburst.pipelines.run_pipeline import PipelineOrchestrator, main

__all__ = ["PipelineOrchestrator", "main"]
