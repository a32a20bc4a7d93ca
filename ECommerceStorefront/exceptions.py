from typing import Dict, Optional


class ECommerceException(Exception):
    """Base exception class for all storefront related exceptions.

    This serves as the parent class for all custom exceptions in the storefront core,
    allowing for catching all storefront specific exceptions in a single except block.
    """
    pass


class ConfigurationError(ECommerceException):
    """Exception raised when the storefront configuration cannot be loaded or is invalid."""
    pass


class EntityNotFound(ECommerceException):
    """Exception raised when an operation targets an entity that no longer exists.

    Callers must treat this as "entity gone", never as a connectivity problem.
    """
    pass


class ProductNotFound(EntityNotFound):
    """Exception raised when a requested product cannot be found.

    Typically raised when updating or deleting a product that was already removed
    from the catalog by another admin.
    """
    pass


class SupplierNotFound(EntityNotFound):
    pass


class CustomerNotFound(EntityNotFound):
    pass


class InvalidDiscountCode(ECommerceException):
    """Exception raised when no discount rule accepts a code.

    The cart never sees it: the discount engine turns it into a rejected result.
    """
    pass


class ApiError(ECommerceException):
    """Exception raised when the remote API rejects a request.

    Attributes:
        message: Human-readable error taken from the response body when available
        status_code: HTTP status code, or None when no response was received
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ApiUnavailable(ApiError):
    """Exception raised when the remote API cannot be reached at all."""
    pass


class InvalidCredentials(ApiError):
    pass


class EmptyCart(ECommerceException):
    """Exception raised when checkout is attempted with no items in the cart."""
    pass


class CheckoutValidationError(ECommerceException):
    """Exception raised when checkout form fields fail validation.

    Attributes:
        field_errors: Mapping of form field name to the first error message for it
    """

    def __init__(self, field_errors: Dict[str, str]):
        super().__init__(f"Invalid checkout fields: {', '.join(sorted(field_errors))}")
        self.field_errors = field_errors
