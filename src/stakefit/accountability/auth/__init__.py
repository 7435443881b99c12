"""Signed-in user and token balance access."""

from .provider import AuthProvider, StoreAuthProvider
from .schemas import UserAccount

__all__ = ["AuthProvider", "StoreAuthProvider", "UserAccount"]
