"""Custom exceptions for monepiceriz."""


class MonepicerizError(Exception):
    """Base exception for all monepiceriz errors."""

    pass


class StoreNotFoundError(MonepicerizError):
    """Raised at the CLI/API boundary when a store code is unknown."""

    def __init__(self, code: str):
        self.code = code
        super().__init__(f"Magasin introuvable: {code}")


class InvalidPhoneNumberError(MonepicerizError):
    """Raised when a phone number is asserted valid but is not."""

    def __init__(self, phone: str, reason: str | None = None):
        self.phone = phone
        msg = f"Invalid Ivorian phone number: {phone}"
        if reason:
            msg = f"{msg} ({reason})"
        super().__init__(msg)


class InvalidQuantityError(MonepicerizError):
    """Raised when a cart quantity is not a positive integer."""

    def __init__(self, quantity: object):
        self.quantity = quantity
        super().__init__(f"Quantity must be a positive integer, got {quantity!r}")


class CartItemNotFoundError(MonepicerizError):
    """Raised at the API boundary when a product has no line in the cart."""

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product not in cart: {product_id}")


class InvalidSchemaVersionError(MonepicerizError):
    """Raised when persisted state has an unsupported schema version."""

    def __init__(self, found: int, supported: int):
        self.found = found
        self.supported = supported
        super().__init__(
            f"Unsupported schema version {found}. This tool supports version {supported}."
        )


class LocationError(MonepicerizError):
    """Raised by a location provider when no position can be obtained.

    ``code`` is one of the ``LocationErrorCode`` values from ``location``.
    """

    def __init__(self, code: int, message: str | None = None):
        self.code = code
        super().__init__(message or f"Location request failed (code {code})")
