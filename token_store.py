import os
import tempfile
from pathlib import Path

import click
from pydantic import ValidationError

from errors import TokenDecodeError, TokenNotFoundError, TokenWriteError
from schemas import Token


class TokenStore:
    """Keeps the single OAuth token at a well-known path."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self) -> Token:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise TokenNotFoundError(f"no token at {self.path}") from e
        except OSError as e:
            raise TokenDecodeError(f"unable to read token {self.path}: {e}") from e

        try:
            return Token.model_validate_json(raw)
        except ValidationError as e:
            raise TokenDecodeError(f"unable to parse token {self.path}: {e}") from e

    def save(self, token: Token) -> None:
        click.echo(f"Saving credentials to: {self.path}", err=True)
        directory = self.path.parent
        try:
            directory.mkdir(mode=0o700, parents=True, exist_ok=True)
            # mkstemp creates the file 0600
            fd, tmp_name = tempfile.mkstemp(dir=directory, prefix=f".{self.path.name}.", suffix=".tmp")
        except OSError as e:
            raise TokenWriteError(f"unable to save token {self.path}: {e}") from e

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(token.model_dump_json())
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.path)
        except OSError as e:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise TokenWriteError(f"unable to save token {self.path}: {e}") from e
