from typing import List, Optional


class BantQualifierError(Exception):
    """Base class for all qualification-engine domain exceptions.

    Every custom exception in this module inherits from here so that a
    single ``except BantQualifierError`` clause can catch any domain
    error.
    """

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(detail)


class ConversationNotFoundError(BantQualifierError):
    """Raised when a requested conversation does not exist."""

    def __init__(self, detail: str = "Conversation not found"):
        super().__init__(detail)


class RubricConfigNotFoundError(BantQualifierError):
    """Raised when no stored rubric exists for the requested key."""

    def __init__(self, detail: str = "BANT configuration not found"):
        super().__init__(detail)


class RubricValidationError(BantQualifierError):
    """Raised when a submitted rubric configuration breaks a validation rule.

    ``issues`` holds every violation found, not just the first one, so
    the administrator can fix the configuration in a single pass.
    """

    def __init__(self, issues: Optional[List] = None, detail: Optional[str] = None):
        self.issues = list(issues or [])
        if detail is None:
            detail = "; ".join(i.message for i in self.issues) or (
                "Invalid BANT configuration"
            )
        super().__init__(detail)


class ExtractionError(BantQualifierError):
    """Raised when a turn could not be turned into BANT facts.

    Always recoverable: the fact record stays at its prior state.
    """

    def __init__(self, detail: str = "Fact extraction failed"):
        super().__init__(detail)


class ExtractionServiceError(ExtractionError):
    """Raised when the text-understanding service is unreachable or errors."""

    def __init__(self, detail: str = "Text-understanding service unavailable"):
        super().__init__(detail)


class ExtractionParseError(ExtractionError):
    """Raised when the text-understanding service returns unusable output."""

    def __init__(self, detail: str = "Unparsable extraction output"):
        super().__init__(detail)


class FactRecordLockedError(BantQualifierError):
    """Raised when a completed fact record is about to be modified."""

    def __init__(self, detail: str = "Fact record is completed and can no longer change"):
        super().__init__(detail)
