"""Exceptions raised inside the triage service.

None of these escape the pipeline: each stage catches them and degrades to
its documented default.
"""


class TriageError(Exception):
    """Base class for triage service errors."""


class CollaboratorError(TriageError):
    """An external collaborator (classifier, responder, embedder, store) failed."""


class EmbeddingError(CollaboratorError):
    """The embedder returned no usable vector."""


class SeverityParseError(TriageError):
    """The severity assessment could not be parsed into a SeverityAssessment."""
