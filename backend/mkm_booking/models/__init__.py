from .booking import BookingRequest
from .email import EmailMessage, ProviderError, SendResult

__all__ = [
    "BookingRequest",
    "EmailMessage",
    "ProviderError",
    "SendResult",
]
