from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

from freebox_client_exceptions import CredentialStoreError
from freebox_models import ApplicationToken
from freebox_utils import safe_int

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_FILE = ".freebox_token"


class TokenStore:
    """Keeps the application token in a single local file."""

    def __init__(self, location):
        self.location = Path(location)

    @classmethod
    def default(cls) -> TokenStore:
        return cls(Path.home() / DEFAULT_TOKEN_FILE)

    def load(self) -> Optional[ApplicationToken]:
        try:
            content = self.location.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            logger.debug(f"No app token stored at {self.location}")
            return None
        except OSError as e:
            raise CredentialStoreError(f"Cannot read app token from {self.location}: {e}") from e

        if not content:
            logger.debug(f"App token file {self.location} is empty")
            return None

        if not content.startswith("{"):
            # plain text file holding the bare token
            return ApplicationToken(app_token=content)

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise CredentialStoreError(f"App token file {self.location} is corrupted: {e}") from e
        app_token = data.get("app_token") if isinstance(data, dict) else None
        if not app_token:
            raise CredentialStoreError(f"App token file {self.location} has no 'app_token'")
        return ApplicationToken(app_token=str(app_token), track_id=safe_int(data.get("track_id")))

    def save(self, token: ApplicationToken) -> None:
        payload = json.dumps({"app_token": token.app_token, "track_id": token.track_id})
        tmp = self.location.with_name(f"{self.location.name}.tmp")
        try:
            self.location.parent.mkdir(parents=True, exist_ok=True)
            # a leftover tmp file would keep its own mode
            tmp.unlink(missing_ok=True)
            fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp, self.location)
        except OSError as e:
            try:
                tmp.unlink(missing_ok=True)
            except OSError:
                logger.debug(f"Cannot remove {tmp}")
            raise CredentialStoreError(f"Cannot write app token to {self.location}: {e}") from e
        logger.info(f"App token saved to {self.location}")

    def clear(self) -> None:
        try:
            self.location.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            raise CredentialStoreError(f"Cannot remove app token at {self.location}: {e}") from e
        logger.info(f"App token removed from {self.location}")
