"""
Error types for order placement, authentication and payment reconciliation.

Order errors are reported to the caller inside a ``{success: false}``
envelope. Auth errors and webhook signature errors map to HTTP status codes.
"""


class OrderError(Exception):
    """Base for failures reported back in the order result envelope."""


class InvalidOrderData(OrderError):
    def __init__(self, message: str = "Invalid data"):
        super().__init__(message)


class ProductNotFound(OrderError):
    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product with ID {product_id} not found.")


class GatewayError(OrderError):
    """The checkout gateway rejected or failed a request."""


class AuthError(Exception):
    status_code = 401

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotAuthenticated(AuthError):
    status_code = 401


class VerificationRequired(AuthError):
    status_code = 403

    def __init__(self, message: str = "Please verify your email address to access this resource."):
        super().__init__(message)


class NotSeller(AuthError):
    status_code = 403

    def __init__(self, message: str = "Not Authorized"):
        super().__init__(message)


class WebhookSignatureError(Exception):
    """Webhook payload could not be authenticated."""


class IntegrityFault(Exception):
    """A verified webhook referenced a session, order or user that cannot be resolved."""
