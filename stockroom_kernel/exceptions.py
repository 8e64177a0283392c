"""
Typed Exception Hierarchy for the Stockroom Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (forms, admin screens, export jobs) must tell a validation problem
from an authorization denial from a missing record without parsing message
text.  Every exception therefore:
  1. Has its own class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable)
  3. Carries structured DATA as attributes (not just a message string)

Example:
    try:
        ledger.issue_stock(actor, product_id, Decimal("40"))
    except InsufficientStockError as e:
        show_inline_error(e.code, available=e.available, unit=e.unit)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    StockroomError (base)
    |
    +-- ValidationError
    |   +-- MissingFieldError
    |   +-- InvalidQuantityError
    |   +-- InvalidDepartmentError
    |   +-- ProtectedFieldError
    |   +-- DuplicateUsernameError
    |   +-- DuplicateDepartmentError
    |   +-- ProtectedAccountError
    |   +-- ImmutableFieldError
    |   +-- InsufficientStockError
    |
    +-- AuthorizationError
    |   +-- PermissionDeniedError
    |   +-- AuthenticationError
    |
    +-- NotFoundError
    |   +-- ProductNotFoundError
    |   +-- IndentNotFoundError
    |   +-- UserNotFoundError
    |   +-- DepartmentNotFoundError
    |
    +-- IndentError
    |   +-- InvalidIndentTransitionError
    |
    +-- ConfirmationRequiredError
    |
    +-- PersistenceError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | MISSING_FIELD               | Required registration field is blank
                | INVALID_QUANTITY            | Non-positive movement / negative opening
                | INVALID_DEPARTMENT          | "All" or unknown department assigned
                | PROTECTED_FIELD             | Disabling name / quantity / unit
                | DUPLICATE_USERNAME          | Username taken (case-insensitive)
                | DUPLICATE_DEPARTMENT        | Department already exists
                | PROTECTED_ACCOUNT           | Deleting the built-in administrator
                | IMMUTABLE_FIELD             | Editing id or ledger counters directly
                | INSUFFICIENT_STOCK          | Issue exceeds balance (reject policy)
----------------|-----------------------------|-----------------------------------------
Authorization   | PERMISSION_DENIED           | Actor lacks the capability
                | AUTHENTICATION_FAILED       | Username / password mismatch
----------------|-----------------------------|-----------------------------------------
Not found       | PRODUCT_NOT_FOUND           | Product id unknown
                | INDENT_NOT_FOUND            | Indent id unknown
                | USER_NOT_FOUND              | User id unknown
                | DEPARTMENT_NOT_FOUND        | Department name unknown
----------------|-----------------------------|-----------------------------------------
Indent          | INVALID_INDENT_TRANSITION   | Transition not in the state machine
----------------|-----------------------------|-----------------------------------------
Destructive     | CONFIRMATION_REQUIRED       | Purge without explicit confirmation
----------------|-----------------------------|-----------------------------------------
Persistence     | PERSISTENCE_FAILED          | Durable write failed
"""


class StockroomError(Exception):
    """
    Base exception for all stockroom kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "STOCKROOM_ERROR"


# Validation


class ValidationError(StockroomError):
    """Base exception for input rejected before any state change."""

    code: str = "VALIDATION_ERROR"


class MissingFieldError(ValidationError):
    """One or more required fields are blank."""

    code: str = "MISSING_FIELD"

    def __init__(self, fields: list[str]):
        self.fields = fields
        super().__init__(f"Required field(s) missing: {', '.join(fields)}")


class InvalidQuantityError(ValidationError):
    """Quantity or price is outside its allowed range."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, field: str, value: str, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field} {value}: {reason}")


class InvalidDepartmentError(ValidationError):
    """Department cannot be assigned (sentinel, blank, or unknown)."""

    code: str = "INVALID_DEPARTMENT"

    def __init__(self, department: str, reason: str):
        self.department = department
        self.reason = reason
        super().__init__(f"Invalid department '{department}': {reason}")


class ProtectedFieldError(ValidationError):
    """Attempt to disable a form field that must always be enabled."""

    code: str = "PROTECTED_FIELD"

    def __init__(self, field_id: str):
        self.field_id = field_id
        super().__init__(f"Form field '{field_id}' cannot be disabled")


class DuplicateUsernameError(ValidationError):
    """Username already exists (compared case-insensitively)."""

    code: str = "DUPLICATE_USERNAME"

    def __init__(self, username: str):
        self.username = username
        super().__init__(f"Username already exists: {username}")


class DuplicateDepartmentError(ValidationError):
    """Department name already exists."""

    code: str = "DUPLICATE_DEPARTMENT"

    def __init__(self, department: str):
        self.department = department
        super().__init__(f"Department already exists: {department}")


class ProtectedAccountError(ValidationError):
    """The built-in administrator account cannot be deleted."""

    code: str = "PROTECTED_ACCOUNT"

    def __init__(self, username: str):
        self.username = username
        super().__init__(f"Account '{username}' cannot be deleted")


class ImmutableFieldError(ValidationError):
    """Edit tried to change identity or ledger counters directly."""

    code: str = "IMMUTABLE_FIELD"

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Field '{field}' changes only through stock movements")


class InsufficientStockError(ValidationError):
    """Issue quantity exceeds the current balance under the reject policy."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(self, product_id: str, requested: str, available: str, unit: str):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        self.unit = unit
        super().__init__(f"Insufficient balance: {available} {unit} available.")


# Authorization


class AuthorizationError(StockroomError):
    """Base exception for identity and capability failures."""

    code: str = "AUTHORIZATION_ERROR"


class PermissionDeniedError(AuthorizationError):
    """Actor does not hold the capability required for the action."""

    code: str = "PERMISSION_DENIED"

    def __init__(self, actor: str, permission: str):
        self.actor = actor
        self.permission = permission
        super().__init__(f"Access denied: {actor} lacks {permission}")


class AuthenticationError(AuthorizationError):
    """Username/password pair did not match any account."""

    code: str = "AUTHENTICATION_FAILED"

    def __init__(self, username: str):
        self.username = username
        super().__init__(
            "Invalid username or password. Please contact the administrator."
        )


# Lookups


class NotFoundError(StockroomError):
    """Base exception for unknown identifiers."""

    code: str = "NOT_FOUND"


class ProductNotFoundError(NotFoundError):
    """Product with given ID was not found."""

    code: str = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id}")


class IndentNotFoundError(NotFoundError):
    """Indent with given ID was not found."""

    code: str = "INDENT_NOT_FOUND"

    def __init__(self, indent_id: str):
        self.indent_id = indent_id
        super().__init__(f"Indent not found: {indent_id}")


class UserNotFoundError(NotFoundError):
    """User with given ID was not found."""

    code: str = "USER_NOT_FOUND"

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"User not found: {user_id}")


class DepartmentNotFoundError(NotFoundError):
    """Department name is not in the department list."""

    code: str = "DEPARTMENT_NOT_FOUND"

    def __init__(self, department: str):
        self.department = department
        super().__init__(f"Department not found: {department}")


# Indents


class IndentError(StockroomError):
    """Base exception for requisition lifecycle errors."""

    code: str = "INDENT_ERROR"


class InvalidIndentTransitionError(IndentError):
    """Requested status change is not an edge of the indent state machine."""

    code: str = "INVALID_INDENT_TRANSITION"

    def __init__(self, indent_id: str, from_status: str, to_status: str):
        self.indent_id = indent_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Indent {indent_id} cannot move from {from_status} to {to_status}"
        )


# Destructive operations


class ConfirmationRequiredError(StockroomError):
    """Irreversible operation was invoked without explicit confirmation."""

    code: str = "CONFIRMATION_REQUIRED"

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(
            f"{operation} is irreversible and requires explicit confirmation"
        )


# Persistence


class PersistenceError(StockroomError):
    """
    Durable write failed.

    The in-memory state is already committed when this is raised; the caller
    may retry the write without re-applying the mutation.
    """

    code: str = "PERSISTENCE_FAILED"

    def __init__(self, keys: list[str], reason: str):
        self.keys = keys
        self.reason = reason
        super().__init__(f"Failed to persist {', '.join(keys)}: {reason}")
