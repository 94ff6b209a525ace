"""Credentia — account credential lifecycle service.

Registration, email verification, password authentication with signed
session tokens, and self-service password reset.
"""

__version__ = "0.1.0"
