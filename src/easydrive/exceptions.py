"""
Custom exceptions for the document intake workflow.
"""


class IntakeError(Exception):
    """Base exception for intake errors"""
    pass


class UserInputError(IntakeError):
    """Raised when a user action cannot be carried out as requested"""
    pass


class UnsupportedFileError(UserInputError):
    """Raised when a selected file has a rejected type or size"""
    pass


class NoRecordError(UserInputError):
    """Raised when a record edit is attempted before extraction"""
    pass


class UnknownFieldError(UserInputError):
    """Raised when an edit names a section or key outside the record schema"""
    pass


class NetworkError(IntakeError):
    """Raised when a remote call fails or answers with a non-success status"""

    def __init__(self, message: str, status_code=None):
        super().__init__(message)
        self.status_code = status_code


class ParseError(IntakeError):
    """Raised when a token or response body cannot be decoded"""
    pass
