"""
Identity Services

Who is signed in, and a notification channel fired whenever that changes.

DESIGN DECISION: The identity provider is an object the caller owns (one
per browser session), never a process-wide singleton. Domain operations
receive the UserSession explicitly, so they can be tested without any
hidden global state.

Sign-in uses the Firebase Identity Toolkit REST API with the project's
Web API key, the same endpoints the Firebase web SDK calls.
"""

from typing import Callable, Optional

import requests
from pydantic import BaseModel, ConfigDict, Field

from minhas_contas.config import get_settings
from minhas_contas.errors import AuthenticationError


IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1/accounts:{action}"

# Identity Toolkit error codes shown to users in plain language
FRIENDLY_AUTH_ERRORS = {
    "EMAIL_NOT_FOUND": "E-mail ou senha inválidos.",
    "INVALID_PASSWORD": "E-mail ou senha inválidos.",
    "INVALID_LOGIN_CREDENTIALS": "E-mail ou senha inválidos.",
    "INVALID_EMAIL": "E-mail inválido.",
    "MISSING_PASSWORD": "Informe a senha.",
    "EMAIL_EXISTS": "Este e-mail já está cadastrado.",
    "USER_DISABLED": "Esta conta foi desativada.",
    "TOO_MANY_ATTEMPTS_TRY_LATER": "Muitas tentativas. Tente novamente mais tarde.",
}


class UserSession(BaseModel):
    """
    An authenticated user.

    uid is the stable identity that scopes every ledger collection.
    """
    model_config = ConfigDict(frozen=True)

    uid: str = Field(..., min_length=1)
    email: Optional[str] = None
    id_token: Optional[str] = Field(default=None, repr=False)
    refresh_token: Optional[str] = Field(default=None, repr=False)


AuthStateListener = Callable[[Optional[UserSession]], None]


class IdentityProvider:
    """
    Holds the current user and notifies listeners on sign-in/sign-out.

    Subclasses implement the actual sign-in; this base class is usable
    directly when the session comes from elsewhere (tests, demo mode).
    """

    def __init__(self):
        self._current_user: Optional[UserSession] = None
        self._listeners: list[AuthStateListener] = []

    @property
    def current_user(self) -> Optional[UserSession]:
        return self._current_user

    def require_user(self) -> UserSession:
        """
        The signed-in user.

        Raises:
            AuthenticationError: If nobody is signed in
        """
        if self._current_user is None:
            raise AuthenticationError("Not authenticated")
        return self._current_user

    def on_auth_state_changed(self, listener: AuthStateListener) -> Callable[[], None]:
        """
        Register a listener called with the new session (or None).

        Returns a callable that unregisters the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set_current_user(self, session: Optional[UserSession]) -> None:
        """Replace the current user and notify every listener."""
        self._current_user = session
        for listener in list(self._listeners):
            listener(session)

    def sign_out(self) -> None:
        if self._current_user is not None:
            self.set_current_user(None)


class FirebaseIdentityProvider(IdentityProvider):
    """
    Email/password authentication against Firebase Authentication.

    Errors from the provider are raised as AuthenticationError with a
    message suitable for the login form.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        http: Optional[requests.Session] = None,
    ):
        super().__init__()
        if api_key is None or timeout is None:
            settings = get_settings().firebase
            api_key = api_key or settings.web_api_key
            timeout = timeout or settings.auth_timeout_seconds
        self._api_key = api_key
        self._timeout = timeout
        self._http = http or requests.Session()

    def sign_in(self, email: str, password: str) -> UserSession:
        """
        Sign in with email and password.

        Raises:
            AuthenticationError: On wrong credentials or provider failure
        """
        data = self._post("signInWithPassword", email, password)
        session = self._session_from(data)
        self.set_current_user(session)
        return session

    def sign_up(self, email: str, password: str) -> UserSession:
        """
        Create an account; the new user is signed in right away.

        Raises:
            AuthenticationError: If the e-mail is taken or the password is weak
        """
        data = self._post("signUp", email, password)
        session = self._session_from(data)
        self.set_current_user(session)
        return session

    def _post(self, action: str, email: str, password: str) -> dict:
        email = (email or "").strip()
        if not email or not password:
            raise AuthenticationError("Informe e-mail e senha.")

        try:
            response = self._http.post(
                IDENTITY_TOOLKIT_URL.format(action=action),
                params={"key": self._api_key},
                json={"email": email, "password": password, "returnSecureToken": True},
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise AuthenticationError(f"Could not reach Firebase Authentication: {e}")

        if response.status_code != 200:
            raise AuthenticationError(self._error_message(response))
        return response.json()

    def _error_message(self, response: requests.Response) -> str:
        try:
            code = response.json().get("error", {}).get("message", "")
        except ValueError:
            code = ""
        # Codes may carry a detail suffix, e.g. "WEAK_PASSWORD : Password should be..."
        key = code.split(":")[0].strip()
        if key == "WEAK_PASSWORD":
            return "A senha deve ter pelo menos 6 caracteres."
        return FRIENDLY_AUTH_ERRORS.get(key, code or f"Authentication failed (HTTP {response.status_code})")

    def _session_from(self, data: dict) -> UserSession:
        uid = data.get("localId")
        if not uid:
            raise AuthenticationError("Authentication response did not include a user id")
        return UserSession(
            uid=uid,
            email=data.get("email"),
            id_token=data.get("idToken"),
            refresh_token=data.get("refreshToken"),
        )
