"""Core auth-domain exports."""

from tripsync.core.auth.static import StaticAuthProvider

__all__ = ["StaticAuthProvider"]
