class EmailManagerError(Exception):
    """Base class for every error the CLI reports to the user."""


class CredentialsError(EmailManagerError):
    pass


class TokenNotFoundError(EmailManagerError):
    pass


class TokenDecodeError(EmailManagerError):
    pass


class TokenWriteError(EmailManagerError):
    pass


class AuthorizationError(EmailManagerError):
    DENIED = "denied"
    TIMEOUT = "timeout"
    NETWORK = "network"
    MALFORMED_CALLBACK = "malformed_callback"
    STATE_MISMATCH = "state_mismatch"
    EXCHANGE = "exchange"

    def __init__(self, kind: str, detail: str = ""):
        self.kind = kind
        self.detail = detail
        message = f"authorization failed ({kind})"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class GmailApiError(EmailManagerError):
    def __init__(self, operation: str, target: str | None = None, detail: str = ""):
        self.operation = operation
        self.target = target
        self.detail = detail
        message = f"error {operation}"
        if target:
            message = f"{message} {target}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class MimeDecodeError(EmailManagerError):
    pass


class LocalIOError(EmailManagerError):
    pass
