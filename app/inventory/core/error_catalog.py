from dataclasses import dataclass
from fastapi import status


@dataclass(frozen=True)
class ErrorDefinition:
    code: str
    message: str
    status_code: int
    alert: bool = False


class ErrorCatalog:
    VALIDATION_ERROR = ErrorDefinition(
        "VALIDATION_ERROR",
        "Validation error",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    INCOMPATIBLE_UNITS = ErrorDefinition(
        "INCOMPATIBLE_UNITS",
        "Units are not directly compatible",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    INVALID_QUANTITY = ErrorDefinition(
        "INVALID_QUANTITY",
        "Quantity must be greater than zero",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    SAME_LOCATION = ErrorDefinition(
        "SAME_LOCATION",
        "Source and destination locations cannot be the same",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    INSUFFICIENT_STOCK = ErrorDefinition(
        "INSUFFICIENT_STOCK",
        "Insufficient stock",
        status.HTTP_409_CONFLICT,
    )
    NO_STOCK_RECORD = ErrorDefinition(
        "NO_STOCK_RECORD",
        "No stock record exists for this variation and location",
        status.HTTP_409_CONFLICT,
    )
    NOT_FOUND = ErrorDefinition(
        "NOT_FOUND",
        "Transaction not found",
        status.HTTP_404_NOT_FOUND,
    )
    ALREADY_FINALIZED = ErrorDefinition(
        "ALREADY_FINALIZED",
        "Transaction is already finalized",
        status.HTTP_409_CONFLICT,
    )
    TRANSFER_INCOMPLETE = ErrorDefinition(
        "TRANSFER_INCOMPLETE",
        "Transfer left stock partially applied; manual reconciliation required",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        alert=True,
    )
    SAGA_ABORTED = ErrorDefinition(
        "SAGA_ABORTED",
        "Compensation failed; manual reconciliation required",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        alert=True,
    )
    PERSISTENCE_ERROR = ErrorDefinition(
        "PERSISTENCE_ERROR",
        "Storage failure",
        status.HTTP_503_SERVICE_UNAVAILABLE,
        alert=True,
    )
    BUSINESS_SCOPE_REQUIRED = ErrorDefinition(
        "BUSINESS_SCOPE_REQUIRED",
        "Business scope is required",
        status.HTTP_400_BAD_REQUEST,
    )
    DB_UNAVAILABLE = ErrorDefinition(
        "DB_UNAVAILABLE",
        "Database unavailable",
        status.HTTP_503_SERVICE_UNAVAILABLE,
    )
    LOCK_TIMEOUT = ErrorDefinition(
        "LOCK_TIMEOUT",
        "Lock wait timeout",
        status.HTTP_409_CONFLICT,
    )
    INTERNAL_ERROR = ErrorDefinition(
        "INTERNAL_ERROR",
        "Internal server error",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


class AppError(Exception):
    def __init__(self, error: ErrorDefinition, details: object | None = None):
        self.error = error
        self.details = details
        super().__init__(error.message)

    @property
    def code(self) -> str:
        return self.error.code


class _CatalogError(AppError):
    definition: ErrorDefinition = ErrorCatalog.INTERNAL_ERROR

    def __init__(self, details: object | None = None):
        super().__init__(self.definition, details)


class ValidationError(_CatalogError):
    """Missing or malformed input."""

    definition = ErrorCatalog.VALIDATION_ERROR


class IncompatibleUnits(_CatalogError):
    definition = ErrorCatalog.INCOMPATIBLE_UNITS


class InvalidQuantity(_CatalogError):
    definition = ErrorCatalog.INVALID_QUANTITY


class SameLocation(_CatalogError):
    definition = ErrorCatalog.SAME_LOCATION


class InsufficientStock(_CatalogError):
    """Balance cannot cover the requested decrease. Routine; not alerted."""

    definition = ErrorCatalog.INSUFFICIENT_STOCK


class NoStockRecord(_CatalogError):
    definition = ErrorCatalog.NO_STOCK_RECORD


class NotFound(_CatalogError):
    definition = ErrorCatalog.NOT_FOUND


class AlreadyFinalized(_CatalogError):
    definition = ErrorCatalog.ALREADY_FINALIZED


class TransferIncomplete(_CatalogError):
    """Source was decreased but the destination never received the quantity."""

    definition = ErrorCatalog.TRANSFER_INCOMPLETE


class SagaAborted(_CatalogError):
    definition = ErrorCatalog.SAGA_ABORTED


class PersistenceError(_CatalogError):
    definition = ErrorCatalog.PERSISTENCE_ERROR
