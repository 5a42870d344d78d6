"""SQLAlchemy models for the application."""

from .customer import Customer, ProviderGroup
from .provider import Provider, ProviderRegistrationStatus

__all__ = [
    "Customer",
    "ProviderGroup",
    "Provider",
    "ProviderRegistrationStatus",
]
