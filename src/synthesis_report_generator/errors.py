"""Exception taxonomy for the synthesis pipeline."""

from __future__ import annotations


class SynthesisError(Exception):
    """Base class for all pipeline errors."""


class ServiceError(SynthesisError):
    """The generation capability failed, was rate-limited, or returned nothing."""


class TruncatedOutputError(ServiceError):
    """The generation capability stopped at its output limit.

    ``partial_text`` holds whatever was produced before the cut-off so the
    orchestrator can decide whether to keep it.
    """

    def __init__(self, message: str, partial_text: str = "") -> None:
        super().__init__(message)
        self.partial_text = partial_text


class StorageError(SynthesisError):
    """Persisting a finished report failed. Never fatal to the run."""


class ClassificationError(SynthesisError):
    """A figure could not be classified.

    The positional classifier is total, so this is never raised by
    ``build_figure_catalog``.
    """


class FigureNotFound(LookupError):
    """A figure source has no bytes for the requested filename."""


class PipelineError(SynthesisError):
    """Raised by the pipeline entry point; wraps the underlying cause."""
