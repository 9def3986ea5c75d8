"""
OTP module exceptions.
"""

from shared.exceptions import ExternalServiceError


class OTPNetworkError(ExternalServiceError):
    """Raised when the OTP service cannot be reached or fails internally."""

    def __init__(self, message: str):
        super().__init__(message, service="otp", code="NETWORK_ERROR")
