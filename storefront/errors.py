"""
Lifecycle errors. Raised inside the store transaction so it rolls back; mapped to HTTP status in main.
"""


class OrderLifecycleError(Exception):
    status_code = 400

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)


class InvalidTransitionError(OrderLifecycleError):
    """Requested status is not allowed from the current state."""

    def __init__(self, detail: str, current_state: str | None = None, target: str | None = None):
        self.current_state = current_state
        self.target = target
        super().__init__(detail)


class InvalidOrderError(OrderLifecycleError):
    """Checkout request is malformed for its order type."""


class NotAuthorizedError(OrderLifecycleError):
    """Acting principal lacks authority: wrong role, not the owner, or not the assigned employee."""
    status_code = 403


class NotFoundError(OrderLifecycleError):
    status_code = 404


class StoreError(OrderLifecycleError):
    """A write failed; the surrounding transaction was rolled back."""
    status_code = 500
