"""
Error types for the donation API.

Each error knows its HTTP status. The router turns any DonationServiceError into
a failure envelope; anything else is reported as a 500.
"""
from typing import Any, Dict, List, Optional


class DonationServiceError(Exception):
    http_status = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class RequestValidationError(DonationServiceError):
    """Missing or malformed input (required fields, JSON body)."""
    http_status = 400


class AuthorizationError(DonationServiceError):
    http_status = 401


class RouteNotFoundError(DonationServiceError):
    http_status = 404

    def __init__(self, path: str, available: List[str]):
        super().__init__("Not Found", {"path": path, "availableEndpoints": list(available)})


class MethodNotAllowedError(DonationServiceError):
    http_status = 405

    def __init__(self, method: str):
        super().__init__("Method Not Allowed")
        self.method = method


class StoreError(DonationServiceError):
    """A MongoDB operation failed; the driver message is kept as-is."""
    http_status = 500

    def __init__(self, message: str, operation: str):
        super().__init__(message)
        self.operation = operation
