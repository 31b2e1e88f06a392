"""Message pipeline module."""

from .pipeline import ITranscriber, MessagePipeline, PipelineResult

__all__ = ["ITranscriber", "MessagePipeline", "PipelineResult"]
