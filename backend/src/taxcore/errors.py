"""
Typed exception hierarchy for the tax compliance core.

Every error carries a machine-readable ``code``, the HTTP ``status_code`` it
maps to, a public ``message`` and optional ``details``. Callers catch by
type, never by message text.

    TaxCoreError
    +-- ConfigurationError          missing server-side secret/config
    +-- AuthorizationError          bad or missing webhook credential
    +-- PayloadValidationError      body unusable
    |   +-- MalformedPayloadError
    |   +-- MissingFieldsError
    +-- DependencyError             directory, allocator or storage failed
    |   +-- OwnerResolutionError
    |   +-- AllocationError
    |   +-- PersistenceError
    +-- DeadlineNotFoundError
"""


class TaxCoreError(Exception):
    """Base exception for all tax core errors."""

    code: str = "TAX_CORE_ERROR"
    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None, details: str | None = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message if details is None else f"{self.message}: {details}")


class ConfigurationError(TaxCoreError):
    """Required server-side configuration is missing."""

    code = "CONFIGURATION_ERROR"
    status_code = 500
    default_message = "Webhook not configured"


class AuthorizationError(TaxCoreError):
    """Presented credential is missing or does not match."""

    code = "UNAUTHORIZED"
    status_code = 401
    default_message = "Unauthorized"


class PayloadValidationError(TaxCoreError):
    """Inbound payload cannot be used."""

    code = "INVALID_PAYLOAD"
    status_code = 400
    default_message = "Invalid payload"


class MalformedPayloadError(PayloadValidationError):
    """Body is not a JSON object."""

    code = "MALFORMED_PAYLOAD"
    default_message = "Invalid JSON"


class MissingFieldsError(PayloadValidationError):
    """Required fields are absent, blank or of the wrong type."""

    code = "MISSING_FIELDS"
    default_message = "Missing required fields"

    def __init__(self, fields: list[str]):
        self.fields = fields
        super().__init__(details=f"Missing or invalid: {', '.join(fields)}")


class DependencyError(TaxCoreError):
    """An external collaborator failed or timed out."""

    code = "DEPENDENCY_ERROR"
    status_code = 500
    default_message = "Dependency failure"


class OwnerResolutionError(DependencyError):
    """The directory did not yield exactly one owning account."""

    code = "OWNER_RESOLUTION_FAILED"
    default_message = "No user found for invoice creation"


class AllocationError(DependencyError):
    """The invoice number allocator failed."""

    code = "ALLOCATION_FAILED"
    default_message = "Failed to generate invoice number"


class PersistenceError(DependencyError):
    """Storage rejected the invoice; details carry the storage message."""

    code = "PERSISTENCE_FAILED"
    default_message = "Failed to create invoice"


class DeadlineNotFoundError(TaxCoreError):
    """No deadline with this id exists for the owner."""

    code = "DEADLINE_NOT_FOUND"
    status_code = 404
    default_message = "Deadline not found"

    def __init__(self, deadline_id: str):
        self.deadline_id = deadline_id
        super().__init__(details=deadline_id)
