from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from pydantic import ValidationError

from friendnet.core.errors import ApiError
from friendnet.core.session import AuthSession
from friendnet.schemas.auth import AuthResponse, Credentials
from friendnet.services.api import FriendsApi
from friendnet.services.notifications import Notifier

logger = logging.getLogger(__name__)

Navigate = Callable[[str], None]
AuthCall = Callable[[Credentials], Awaitable[AuthResponse]]

HOME_ROUTE = "/"


class AuthForm:
    """Credential form bound to one auth endpoint.

    ``call`` is the coroutine that exchanges credentials for a token. On
    success the session is populated and the form navigates home; on failure
    the server's message (or ``failure_message``) is shown.
    """

    def __init__(
        self,
        call: AuthCall,
        session: AuthSession,
        *,
        success_message: str,
        failure_message: str,
        logout_on_failure: bool = False,
        notifier: Notifier | None = None,
        navigate: Navigate | None = None,
    ) -> None:
        self._call = call
        self.session = session
        self.success_message = success_message
        self.failure_message = failure_message
        self._logout_on_failure = logout_on_failure
        self.notifier = notifier or Notifier()
        self._navigate = navigate
        self.username = ""
        self.password = ""
        self.loading = False

    async def submit(self, username: str | None = None, password: str | None = None) -> bool:
        if username is not None:
            self.username = username
        if password is not None:
            self.password = password

        try:
            credentials = Credentials(username=self.username, password=self.password)
        except ValidationError:
            self.notifier.error("Username and password are required")
            return False

        self.loading = True
        try:
            auth = await self._call(credentials)
        except ApiError as exc:
            logger.warning(
                "%s username=%s status=%s",
                self.failure_message,
                credentials.username,
                exc.status_code,
                exc_info=exc,
            )
            if self._logout_on_failure:
                self.session.logout()
            self.notifier.error(exc.user_message(self.failure_message))
            return False
        finally:
            self.loading = False

        self.session.login(auth.token, auth.user_id, credentials.username)
        self.notifier.success(self.success_message)
        if self._navigate is not None:
            self._navigate(HOME_ROUTE)
        return True


class LoginForm(AuthForm):
    def __init__(
        self,
        api: FriendsApi,
        session: AuthSession,
        *,
        notifier: Notifier | None = None,
        navigate: Navigate | None = None,
    ) -> None:
        # A failed login never leaves an earlier identity behind.
        super().__init__(
            api.login,
            session,
            success_message="Login successful!",
            failure_message="Login failed",
            logout_on_failure=True,
            notifier=notifier,
            navigate=navigate,
        )


class RegisterForm(AuthForm):
    def __init__(
        self,
        api: FriendsApi,
        session: AuthSession,
        *,
        notifier: Notifier | None = None,
        navigate: Navigate | None = None,
    ) -> None:
        super().__init__(
            api.register,
            session,
            success_message="Registration successful!",
            failure_message="Registration failed",
            notifier=notifier,
            navigate=navigate,
        )
