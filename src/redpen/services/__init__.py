# src/redpen/services/__init__.py
"""Business logic services for the Redpen application."""

from .payments import HttpPaymentProcessor, PaymentProcessor
from .toggle import ToggleEngine, ToggleResult

__all__ = [
    "HttpPaymentProcessor",
    "PaymentProcessor",
    "ToggleEngine",
    "ToggleResult",
]
