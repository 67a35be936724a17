"""Authenticated identity passed explicitly into identity-scoped services."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Identity:
    """The signed-in user. `uid` keys the persisted subscription document."""

    uid: str
    email: str | None = None

    @property
    def display_name(self) -> str:
        return self.email or self.uid


class AuthenticationRequiredError(Exception):
    """Raised when an operation needs an identity or credentials that are absent."""

    pass
