"""Middleware module for LinkShelf backend."""

from linkshelf.middleware.auth_gate import AuthenticationGate, AuthGateMiddleware

__all__ = [
    "AuthGateMiddleware",
    "AuthenticationGate",
]
