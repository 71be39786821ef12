"""Pipeline event types and sinks."""

from codeatlas.services.events import DiagnosticSink, ProgressCallback, StageEvent

__all__ = ["DiagnosticSink", "ProgressCallback", "StageEvent"]
