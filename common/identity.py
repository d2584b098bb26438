"""
Brew & Leaf - Cart/Order Owner Identity
=========================================
An owner is either a logged-in user or a guest browser session, never both.
Services receive it explicitly; nothing reads it from request state.
"""

from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class Authenticated:
    user_id: int

    @property
    def user_id_or_none(self) -> Optional[int]:
        return self.user_id

    def __str__(self):
        return f"user:{self.user_id}"


@dataclass(frozen=True)
class Guest:
    session_token: str

    def __post_init__(self):
        if not self.session_token:
            raise ValueError("Guest identity requires a session token")

    @property
    def user_id_or_none(self) -> Optional[int]:
        return None

    def __str__(self):
        return f"guest:{self.session_token[:8]}"


Identity = Union[Authenticated, Guest]
