import json
from datetime import timezone
from typing import Callable

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from loguru import logger

from auth_flow import SCOPES, AuthorizationFlow
from errors import CredentialsError, TokenDecodeError, TokenNotFoundError, TokenWriteError
from gmail_service import GmailService
from schemas import Token
from settings import Settings
from token_store import TokenStore


class CredentialProvider:
    """Hands out an authenticated Gmail client, authorizing the user if needed."""

    def __init__(
        self,
        settings: Settings,
        token_store: TokenStore | None = None,
        flow_factory: Callable[[dict, Settings], AuthorizationFlow] | None = None,
    ) -> None:
        self.settings = settings
        self.token_store = token_store or TokenStore(settings.token_path)
        self.flow_factory = flow_factory or AuthorizationFlow.from_client_config
        self._client_config: dict | None = None

    @property
    def client_config(self) -> dict:
        if self._client_config is None:
            self._client_config = self._read_client_config()
        return self._client_config

    def _read_client_config(self) -> dict:
        path = self.settings.credentials_path
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except OSError as e:
            raise CredentialsError(f"unable to read credentials file {path}: {e}") from e
        except ValueError as e:
            raise CredentialsError(f"unable to parse credentials file {path}: {e}") from e

        if not isinstance(data, dict) or not ("installed" in data or "web" in data):
            raise CredentialsError(
                f"unable to parse credentials file {path}: expected an 'installed' or 'web' client"
            )
        return data

    @property
    def client_info(self) -> dict:
        config = self.client_config
        return config.get("installed") or config["web"]

    def authorize(self) -> Token:
        """Run the consent flow and persist whatever token it yields."""
        flow = self.flow_factory(self.client_config, self.settings)
        token = flow.run()
        try:
            self.token_store.save(token)
        except TokenWriteError as e:
            logger.warning(f"Unable to save token: {e}")
        return token

    def get_token(self) -> Token:
        try:
            return self.token_store.load()
        except TokenNotFoundError:
            logger.info("No cached token, starting authorization")
        except TokenDecodeError as e:
            logger.warning(f"Cached token is unusable, re-authorizing: {e}")
        return self.authorize()

    def get_credentials(self) -> Credentials:
        # Read the client descriptor first so a missing file fails before any browser work.
        info = self.client_info
        token = self.get_token()

        expiry = token.expiry
        if expiry is not None and expiry.tzinfo is not None:
            # google-auth compares against naive UTC
            expiry = expiry.astimezone(timezone.utc).replace(tzinfo=None)

        return Credentials(
            token=token.access_token,
            refresh_token=token.refresh_token,
            token_uri=info.get("token_uri", "https://oauth2.googleapis.com/token"),
            client_id=info.get("client_id"),
            client_secret=info.get("client_secret"),
            scopes=SCOPES,
            expiry=expiry,
        )

    def get_service(self) -> GmailService:
        creds = self.get_credentials()
        try:
            resource = build("gmail", "v1", credentials=creds, cache_discovery=False)
        except Exception as e:
            raise CredentialsError(f"unable to create Gmail service: {e}") from e
        logger.info("Gmail service authenticated successfully")
        return GmailService(resource)
