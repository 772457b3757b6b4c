"""
Interactive OAuth2 authorization-code flow for a desktop client.

A short-lived HTTP listener is bound on the loopback interface before the
consent URL is shown, the user's browser is pointed at Google, and the
redirect carrying the authorization code is handed back to the waiting
caller through a single-slot queue. The listener is always shut down before
the code is exchanged for a token.
"""
import html
import queue
import secrets
import sys
import threading
import webbrowser
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Callable
from urllib.parse import parse_qs, urlparse

import requests
from google_auth_oauthlib.flow import Flow
from loguru import logger
from oauthlib.oauth2 import OAuth2Error

from errors import AuthorizationError
from schemas import AuthorizationRequest, AuthorizationResult, Token
from settings import Settings

SCOPES = [
    "https://www.googleapis.com/auth/gmail.modify",
    "https://www.googleapis.com/auth/gmail.send",
    "https://www.googleapis.com/auth/gmail.labels",
]
CALLBACK_PATH = "/oauth2callback"

SUCCESS_PAGE = b"""<html>
<body>
<h1>Authentication successful!</h1>
<p>You can close this window and return to the terminal.</p>
</body>
</html>
"""

FAILURE_PAGE = """<html>
<body>
<h1>Authentication failed</h1>
<p>{reason}</p>
</body>
</html>
"""


class CallbackServer(HTTPServer):
    def __init__(self, address: tuple[str, int]) -> None:
        super().__init__(address, CallbackHandler)
        self.expected_state: str | None = None
        self.results: "queue.Queue[AuthorizationResult]" = queue.Queue(maxsize=1)

    def deliver(self, result: AuthorizationResult) -> None:
        # First callback wins; anything after it is dropped.
        try:
            self.results.put_nowait(result)
        except queue.Full:
            logger.debug("Ignoring duplicate OAuth callback")


class CallbackHandler(BaseHTTPRequestHandler):
    server: CallbackServer
    timeout = 5

    def log_message(self, format, *args):
        logger.debug(f"OAuth callback listener: {format % args}")

    def do_GET(self):
        url = urlparse(self.path)
        if url.path != CALLBACK_PATH:
            self.send_error(404)
            return

        params = parse_qs(url.query)
        code = params.get("code", [""])[0]
        state = params.get("state", [""])[0]
        error = params.get("error", [""])[0]

        if error:
            result = AuthorizationResult(error=AuthorizationError.DENIED, detail=error)
        elif not code:
            result = AuthorizationResult(
                error=AuthorizationError.MALFORMED_CALLBACK, detail="no code in callback"
            )
        elif state != self.server.expected_state:
            result = AuthorizationResult(
                error=AuthorizationError.STATE_MISMATCH, detail="state parameter does not match"
            )
        else:
            self._respond(200, SUCCESS_PAGE)
            self.server.deliver(AuthorizationResult(code=code))
            return

        self._respond(400, FAILURE_PAGE.format(reason=html.escape(result.detail)).encode("utf-8"))
        self.server.deliver(result)

    def _respond(self, status: int, page: bytes) -> None:
        self.send_response(status)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(page)))
        self.end_headers()
        self.wfile.write(page)
        self.wfile.flush()


class AuthorizationFlow:
    def __init__(
        self,
        oauth_flow: Flow,
        host: str = "localhost",
        port: int = 8080,
        timeout: float = 180.0,
        shutdown_timeout: float = 5.0,
        browser: Callable[[str], bool] | None = webbrowser.open,
    ) -> None:
        self.oauth_flow = oauth_flow
        self.host = host
        self.port = port
        self.timeout = timeout
        self.shutdown_timeout = shutdown_timeout
        self.browser = browser

    @classmethod
    def from_client_config(cls, client_config: dict, settings: Settings) -> "AuthorizationFlow":
        oauth_flow = Flow.from_client_config(client_config, scopes=SCOPES)
        return cls(
            oauth_flow,
            host=settings.oauth_host,
            port=settings.oauth_port,
            timeout=settings.auth_timeout,
            shutdown_timeout=settings.shutdown_timeout,
            browser=webbrowser.open if settings.open_browser else None,
        )

    def build_request(self, port: int) -> AuthorizationRequest:
        redirect_uri = f"http://localhost:{port}{CALLBACK_PATH}"
        self.oauth_flow.redirect_uri = redirect_uri
        state = secrets.token_urlsafe(32)
        authorization_url, _ = self.oauth_flow.authorization_url(
            state=state, access_type="offline", prompt="consent"
        )
        return AuthorizationRequest(
            authorization_url=authorization_url,
            redirect_uri=redirect_uri,
            scopes=list(SCOPES),
            state=state,
        )

    def run(self) -> Token:
        """Drive the consent flow end to end and return a fresh token."""
        server = self._listen()
        thread = threading.Thread(
            target=server.serve_forever, kwargs={"poll_interval": 0.1}, daemon=True
        )
        try:
            request = self.build_request(server.server_port)
            server.expected_state = request.state
            thread.start()
            self._announce(request)
            result = self._wait(server)
        finally:
            self._shutdown(server, thread)

        if not result.ok:
            raise AuthorizationError(result.error, result.detail)

        token = self._exchange(result.code)
        print("\nAuthentication successful!", file=sys.stderr)
        return token

    def _listen(self) -> CallbackServer:
        try:
            server = CallbackServer((self.host, self.port))
        except OSError as e:
            raise AuthorizationError(
                AuthorizationError.NETWORK, f"unable to listen on {self.host}:{self.port}: {e}"
            ) from e
        logger.info(f"OAuth callback listener bound on {self.host}:{server.server_port}")
        return server

    def _announce(self, request: AuthorizationRequest) -> None:
        print("Opening browser for authentication...", file=sys.stderr)
        print(f"If browser doesn't open, visit:\n{request.authorization_url}\n", file=sys.stderr)

        if self.browser is None:
            return
        try:
            opened = self.browser(request.authorization_url)
        except webbrowser.Error as e:
            logger.warning(f"Unable to launch browser: {e}")
            return
        if not opened:
            logger.warning("No browser could be launched, open the URL manually")

    def _wait(self, server: CallbackServer) -> AuthorizationResult:
        try:
            return server.results.get(timeout=self.timeout)
        except queue.Empty:
            raise AuthorizationError(
                AuthorizationError.TIMEOUT,
                f"no callback received within {self.timeout:g} seconds",
            ) from None

    def _shutdown(self, server: CallbackServer, thread: threading.Thread) -> None:
        if thread.is_alive():
            stopper = threading.Thread(target=server.shutdown, daemon=True)
            stopper.start()
            stopper.join(self.shutdown_timeout)
            if stopper.is_alive():
                logger.warning(
                    f"OAuth callback listener did not stop within {self.shutdown_timeout:g}s"
                )
        server.server_close()
        logger.info("OAuth callback listener stopped")

    def _exchange(self, code: str) -> Token:
        try:
            data = self.oauth_flow.fetch_token(code=code)
        except requests.exceptions.RequestException as e:
            raise AuthorizationError(AuthorizationError.NETWORK, str(e)) from e
        except OAuth2Error as e:
            raise AuthorizationError(AuthorizationError.EXCHANGE, e.description or e.error) from e
        except Warning as e:
            # oauthlib raises Warning when the granted scopes differ from the requested ones
            raise AuthorizationError(AuthorizationError.EXCHANGE, str(e)) from e

        try:
            return Token.from_oauth_response(data)
        except (KeyError, TypeError, ValueError) as e:
            raise AuthorizationError(
                AuthorizationError.EXCHANGE, f"unexpected token response: {e}"
            ) from e
