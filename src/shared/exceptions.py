"""Exceptions for the shared module."""


class DocumentReferenceExistsError(Exception):
    """Raised when a reference for a document key has already been recorded."""
    pass
