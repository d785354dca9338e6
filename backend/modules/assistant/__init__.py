"""Meeting assistant module."""

from .service import AssistantService, ParsedQuery, parse_query, format_transcript_context

__all__ = [
    "AssistantService",
    "ParsedQuery",
    "parse_query",
    "format_transcript_context",
]
