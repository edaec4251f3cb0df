from __future__ import annotations


class GatewayError(Exception):
    """Base class for errors raised by the gateway core."""


class ConfigError(GatewayError):
    pass


class StorageError(GatewayError):
    """The credential database could not be read or written."""


class DuplicateUsernameError(GatewayError):
    def __init__(self, username: str) -> None:
        super().__init__(f"Username already exists: {username}")
        self.username = username


class PasswordHashError(GatewayError):
    """Hashing or verifying a password failed inside bcrypt."""


class RegistrationClosedError(GatewayError):
    def __init__(self) -> None:
        super().__init__("Registration is closed. An account already exists.")


class PowerControlError(GatewayError):
    """A management controller call failed.

    `message` is the operator-facing text returned by the gateway.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class RemoteConnectError(PowerControlError):
    pass


class RemoteParseError(PowerControlError):
    pass


class RemoteStatusError(PowerControlError):
    def __init__(self, message: str, *, status_code: int, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body
