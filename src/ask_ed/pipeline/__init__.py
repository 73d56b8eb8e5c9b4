"""Retrieval, ranking and context assembly pipeline."""

from ask_ed.pipeline.assembly import ContextAssembler, assemble_context
from ask_ed.pipeline.confidence import calculate_confidence
from ask_ed.pipeline.documents import (
    ContextResult,
    DocumentChunk,
    SearchConfidence,
    SearchMethod,
    SearchResult,
)
from ask_ed.pipeline.orchestrator import ContextOrchestrator
from ask_ed.pipeline.query import enhance_query
from ask_ed.pipeline.retrieval import RetrievalEngine

__all__ = [
    "ContextAssembler",
    "ContextOrchestrator",
    "ContextResult",
    "DocumentChunk",
    "RetrievalEngine",
    "SearchConfidence",
    "SearchMethod",
    "SearchResult",
    "assemble_context",
    "calculate_confidence",
    "enhance_query",
]
