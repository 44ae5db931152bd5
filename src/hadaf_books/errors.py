"""
Hadaf Books - Error Kinds

Every failure the bookkeeping engine reports to a caller is one of the classes
below. Each carries a machine-readable ``code`` and the HTTP ``status`` the API
layer answers with, so routes never have to inspect message text.

Author: Hadaf Books contributors
License: MIT
"""


class BooksError(Exception):
    """Base class for all engine errors."""

    status = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message=None, details=None):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__
        self.details = details

    def to_dict(self):
        error = {"code": self.code, "message": self.message}
        if self.details is not None:
            error["details"] = self.details
        return error


class NotFound(BooksError):
    """Requested record does not exist."""

    status = 404
    code = "NOT_FOUND"


class InvalidCategory(BooksError):
    """category_id not found"""

    status = 400
    code = "INVALID_CATEGORY"


class InvalidParent(BooksError):
    """parentId not found"""

    status = 400
    code = "INVALID_PARENT"


class DuplicateName(BooksError):
    """Category name already exists"""

    status = 409
    code = "DUPLICATE_CATEGORY"


class InactiveTemplate(BooksError):
    """Recurring transaction is inactive"""

    status = 400
    code = "INACTIVE"


class ValidationError(BooksError):
    """Validation failed"""

    status = 400
    code = "VALIDATION_ERROR"


class DuplicateInstallment(BooksError):
    """A pending installment already exists for this recurring transaction and date"""

    status = 409
    code = "DUPLICATE_INSTALLMENT"
