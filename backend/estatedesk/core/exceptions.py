"""
Domain Exceptions

Services raise these; the handlers registered in main.py turn them into
``{"status": false, "message": ...}`` responses with the matching status code.
They derive from ValueError so callers that only care about "the request was
rejected" can keep catching ValueError.
"""


class EstateDeskError(ValueError):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailedError(EstateDeskError):
    """Input is well-formed but unacceptable (duplicate keys, bad references)"""
    status_code = 422


class BusinessRuleError(EstateDeskError):
    """Request conflicts with a ledger or lifecycle rule"""
    status_code = 400


class PermissionDeniedError(EstateDeskError):
    """Protected Super Admin role or user"""
    status_code = 403


class NotFoundError(EstateDeskError):
    """Missing id, or id hidden because the row is soft-deleted"""
    status_code = 404
