"""
Business errors raised by the service layer.

Each error carries the HTTP status the API layer answers with, so the
exception handlers in main.py never need to know about individual types.
"""


class OrderManagementError(Exception):
    status_code = 400
    error = "Bad Request"

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class ResourceNotFound(OrderManagementError):
    status_code = 404
    error = "Resource Not Found"

    def __init__(self, resource, field, value):
        super().__init__(f"{resource} not found with {field}: {value}")
        self.resource = resource
        self.field = field
        self.value = value


class DuplicateResource(OrderManagementError):
    status_code = 409
    error = "Duplicate Resource"

    def __init__(self, resource, field, value):
        super().__init__(f"{resource} already exists with {field}: {value}")
        self.resource = resource
        self.field = field
        self.value = value


class InsufficientStock(OrderManagementError):
    error = "Insufficient Stock"

    def __init__(self, product_name, requested, available):
        super().__init__(
            f"Insufficient stock for product {product_name}: "
            f"requested={requested}, available={available}"
        )
        self.product_name = product_name
        self.requested = requested
        self.available = available


class InvalidStatusTransition(OrderManagementError):
    error = "Invalid Status Transition"

    def __init__(self, current, requested):
        current = getattr(current, "value", current)
        requested = getattr(requested, "value", requested)
        super().__init__(f"Cannot change order status from {current} to {requested}")
        self.current = current
        self.requested = requested


class ValidationFailure(OrderManagementError):
    error = "Validation Failed"


class BusinessRuleViolation(OrderManagementError):
    error = "Business Rule Violation"
