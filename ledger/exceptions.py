# ==========================================================
#                  LEDGER EXCEPTIONS
# ==========================================================
# Every error the ledger and report services raise maps to one HTTP status.
# The blueprints never build error responses by hand; create_app() registers
# a handler for LedgerError.


class LedgerError(Exception):
    """Base ledger exception"""
    status_code = 400
    code = "LEDGER_ERROR"

    def __init__(self, message: str = None):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__

    def to_dict(self):
        return {"error": self.message, "code": self.code}


class AuthenticationError(LedgerError):
    """Authentication required"""
    status_code = 401
    code = "UNAUTHORIZED"


class NotFoundError(LedgerError):
    """User not found"""
    status_code = 404
    code = "NOT_FOUND"


class ForbiddenError(LedgerError):
    """Insufficient permissions"""
    status_code = 403
    code = "FORBIDDEN"


class InvalidInputError(LedgerError):
    """Invalid request"""
    status_code = 400
    code = "INVALID_INPUT"


class InsufficientFundsError(LedgerError):
    """Insufficient balance"""
    status_code = 400
    code = "INSUFFICIENT_FUNDS"
