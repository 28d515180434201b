class QuoteDeskError(Exception):
    """Base for errors surfaced to API callers as a JSON error envelope."""

    status_code = 400
    code = "error"

    def __init__(self, message=None, line=None):
        super().__init__(message or self.code)
        self.message = message or self.code
        self.line = line

    def to_dict(self):
        data = {"success": False, "error": self.code, "message": self.message}
        if self.line is not None:
            data["line"] = self.line
        return data


class ValidationError(QuoteDeskError):
    code = "validation_error"


class InvalidQuantity(ValidationError):
    code = "invalid_quantity"


class InvalidLineValue(ValidationError):
    code = "invalid_line_value"


class EmptyQuotation(ValidationError):
    code = "empty_quotation"


class NumberAllocationFailed(QuoteDeskError):
    status_code = 409
    code = "number_allocation_failed"


class InvalidStatusTransition(QuoteDeskError):
    status_code = 409
    code = "invalid_status_transition"


class QuotationLocked(QuoteDeskError):
    status_code = 409
    code = "quotation_locked"
