"""
Services for Ritual.

- AuthService: register, login, authorize, profile updates
- HabitService: user-scoped habit CRUD and progress logging
- stats: dashboard statistics over loaded habits
"""

from .auth import AuthService, PasswordHasher, TokenSigner
from .habits import HabitService, load_owned_habit

__all__ = [
    "AuthService",
    "PasswordHasher",
    "TokenSigner",
    "HabitService",
    "load_owned_habit",
]
