"""
Terminal pipeline failures.

Nodes raise these internally; the node boundary converts them into the
workflow's ``error`` field so they never escape a run.
"""


class PipelineError(Exception):
    """Base class for failures that end the enrichment stages of a run."""

    kind = "pipeline_failure"

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class ParseFailure(PipelineError):
    """The query could not be turned into structured intent."""

    kind = "parse_failure"


class LookupFailure(PipelineError):
    """Address or signature resolution failed at a provider."""

    kind = "lookup_failure"


class RetrievalFailure(PipelineError):
    """Transaction history could not be fetched."""

    kind = "retrieval_failure"


class AnalysisFailure(PipelineError):
    """Narrative synthesis failed."""

    kind = "analysis_failure"
