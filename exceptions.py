"""Domain errors raised by the KYC services and mapped to HTTP responses in main.py."""


class KycError(Exception):
    """Base exception for all Business KYC errors."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(KycError):
    """A referenced entity does not exist or is inactive / soft-deleted."""

    status_code = 404


class BadRequestError(KycError):
    """Malformed submission or business-rule violation."""

    status_code = 400


class StageGuardError(BadRequestError):
    """Operation attempted while the KYC pointer is on a different stage."""

    def __init__(self, current: str, required: str):
        super().__init__(f"Operation requires stage '{required}' but KYC is at '{current}'")
        self.current = current
        self.required = required


class StageConflictError(BadRequestError):
    """The status pointer moved between the guard check and the write."""


class TerminalStageError(BadRequestError):
    """Advancement requested from the final stage of the workflow."""


class CatalogConfigurationError(BadRequestError):
    """The status catalog is inconsistent (duplicate initial row, gap, missing next row)."""


class ForbiddenError(KycError):
    """Cross-tenant access attempt."""

    status_code = 403


class ConfigurationError(KycError):
    """Configuration is invalid or missing."""
