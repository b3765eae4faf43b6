from __future__ import annotations


class ExamError(Exception):
    """Base class for exam practice failures."""


class DataLoadError(ExamError):
    """Exam source unreachable or not a valid exam document."""


class MissingCredentialError(ExamError):
    """A hint-backed evaluation was requested without a credential."""

    def __init__(self, message: str = "credential is required to check answers"):
        super().__init__(message)


class ProviderError(ExamError):
    """The hint provider could not produce a hint."""
