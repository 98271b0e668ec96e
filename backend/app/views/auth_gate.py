import logging

from pydantic import ValidationError

from app.client.api import BackendError

logger = logging.getLogger("views.auth_gate")

SIGN_IN = "sign_in"
SIGN_UP = "sign_up"
CONFIRM_EMAIL_MESSAGE = "Please check your email to confirm your account"
UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred"


class AuthGate:
    """Sign-in / sign-up form state shown while no session exists."""

    def __init__(self, client):
        self.Client = client
        self.Mode = SIGN_IN
        self.Email = ""
        self.Password = ""
        self.Message = ""
        self.Loading = False

    @property
    def IsLogin(self) -> bool:
        return self.Mode == SIGN_IN

    @property
    def IsInfo(self) -> bool:
        return self.Message == CONFIRM_EMAIL_MESSAGE

    def Toggle(self) -> None:
        self.Mode = SIGN_UP if self.IsLogin else SIGN_IN

    async def Submit(self, email: str | None = None, password: str | None = None) -> bool:
        if email is not None:
            self.Email = email
        if password is not None:
            self.Password = password
        self.Loading = True
        self.Message = ""
        try:
            if self.IsLogin:
                await self.Client.SignIn(self.Email, self.Password)
            else:
                await self.Client.SignUp(self.Email, self.Password)
                self.Message = CONFIRM_EMAIL_MESSAGE
            return True
        except BackendError as exc:
            logger.info("authentication rejected mode=%s: %s", self.Mode, exc.Message)
            self.Message = exc.Message
            return False
        except (ValidationError, KeyError, TypeError):
            logger.exception("unexpected authentication failure mode=%s", self.Mode)
            self.Message = UNEXPECTED_ERROR_MESSAGE
            return False
        finally:
            self.Loading = False
