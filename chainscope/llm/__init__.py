"""
Completion service module.
Wraps the language model used for query parsing and report writing.
"""

from chainscope.llm.completion import (
    CompletionService,
    OpenAICompletionService,
    get_completion_service,
)

__all__ = [
    "CompletionService",
    "OpenAICompletionService",
    "get_completion_service",
]
