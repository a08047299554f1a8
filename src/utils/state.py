from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from api.errors import AdminRequiredError, AuthRequiredError
from api.models import User
from utils.cache import QueryCache


@dataclass
class GlobalState:
    """
    Centralized application state shared by screens.

    Fields:
      - user: the logged-in user, None for a guest
      - cache: read results memoized for this app session

    Admin vs customer is decided by looking at user.is_admin here, screens
    never subclass per role.
    """

    user: Optional[User] = None
    cache: QueryCache = field(default_factory=QueryCache)

    @property
    def is_logged_in(self) -> bool:
        return self.user is not None

    @property
    def is_admin(self) -> bool:
        return self.user is not None and self.user.is_admin

    def require_user(self) -> User:
        if self.user is None:
            raise AuthRequiredError("Please login to continue.")
        return self.user

    def require_admin(self) -> User:
        user = self.require_user()
        if not user.is_admin:
            raise AdminRequiredError("You don't have permission to do that.")
        return user
