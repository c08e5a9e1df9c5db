"""
Adapters for external collaborators (payment processor, identity provider).

Concrete classes are chosen by settings so tests and deployments can swap them.
"""

from .payments import PaymentProcessor, PaymentProcessorError, get_payment_processor
from .identity import IdentityMatch, IdentityProvider, IdentityProviderError, get_identity_provider

__all__ = [
    "PaymentProcessor",
    "PaymentProcessorError",
    "get_payment_processor",
    "IdentityMatch",
    "IdentityProvider",
    "IdentityProviderError",
    "get_identity_provider",
]
