from typing import Dict, Optional


class PrintFlowError(Exception):
    """Base class for every error raised by the ordering flow."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PrintFlowError):
    """Local validation failure, scoped to one or more named fields."""

    def __init__(self, field_errors: Dict[str, str], message: Optional[str] = None):
        super().__init__(message or "; ".join(f"{k}: {v}" for k, v in field_errors.items()))
        self.field_errors = dict(field_errors)


class InvalidQuantityError(ValidationError):
    def __init__(self, field: str, message: str):
        super().__init__({field: message})
        self.field = field


class ConfigurationError(PrintFlowError):
    """Programmer or data error: bad price table, unknown binding method."""


class UploadError(PrintFlowError):
    pass


class SubmissionError(PrintFlowError):
    pass


class PaymentError(PrintFlowError):
    pass


class TransitionError(PrintFlowError):
    """Operation not allowed from the session's current step, or a guard failed."""


class TransitionInProgressError(TransitionError):
    pass


class BackendError(PrintFlowError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class OrderNotFoundError(BackendError):
    pass


class PricingUnavailableError(BackendError):
    pass
