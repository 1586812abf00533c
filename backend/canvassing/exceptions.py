"""
Upload rejection types.

An UploadRejected is an expected, terminal outcome of an upload (bad input,
unreadable screenshot, wrong day's message, unknown prospect). It is raised
inside the upload transaction so that everything written so far rolls back,
then reported to the staff member as-is. Anything else that escapes the
pipeline is an internal fault and surfaces as UploadPipelineError.
"""


class UploadRejected(Exception):
    error_type = "rejected"

    def __init__(self, message: str, details: dict = None, error_type: str = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if error_type:
            self.error_type = error_type


class InputRejected(UploadRejected):
    """Missing/invalid form input, or a screenshot that was already uploaded."""
    error_type = "invalid_input"


class ExtractionFailed(UploadRejected):
    """OCR produced no usable handle."""
    error_type = "extraction_failed"


class TemplateMismatch(UploadRejected):
    """The message on the screenshot is not the expected day's script."""
    error_type = "template_mismatch"


class ResolutionFailed(UploadRejected):
    """The handle could not be tied to a prospect/cycle the upload is valid for."""
    error_type = "resolution_failed"


class UploadPipelineError(Exception):
    """Unexpected internal fault while processing an upload."""


class OperationNotAllowed(Exception):
    """A message/cycle administration action that the record's state forbids."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
