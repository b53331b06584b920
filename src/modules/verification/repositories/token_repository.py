import json
import logging
import re
from pathlib import Path
from typing import Iterator, Optional

from pydantic import ValidationError

from modules.verification.models.verification_token import VerificationToken

logger = logging.getLogger(__name__)

TOKEN_PREFIX = "token_"
TOKEN_FORMAT = re.compile(r"^[0-9a-f]{32}_[0-9a-f]{64}$")


class TokenRepository:
    """One JSON file per token, named token_<token>.json"""

    def __init__(self, tokens_dir: Path):
        self.tokens_dir = Path(tokens_dir)
        self.tokens_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, token: str) -> Path:
        return self.tokens_dir / f"{TOKEN_PREFIX}{token}.json"

    def save(self, record: VerificationToken) -> VerificationToken:
        path = self._path(record.token)
        tmp_path = path.with_name(path.name + ".tmp")
        tmp_path.write_text(json.dumps(record.to_record(), indent=2), encoding="utf-8")
        tmp_path.replace(path)
        return record

    def find(self, token: str) -> Optional[VerificationToken]:
        if not token or not TOKEN_FORMAT.match(token):
            return None
        path = self._path(token)
        if not path.is_file():
            return None
        try:
            return self.read(path)
        except (ValidationError, OSError):
            logger.exception("Unreadable verification token file %s", path.name)
            return None

    def files(self) -> Iterator[Path]:
        return iter(sorted(self.tokens_dir.glob(f"{TOKEN_PREFIX}*.json")))

    @staticmethod
    def read(path: Path) -> VerificationToken:
        return VerificationToken.model_validate_json(path.read_text(encoding="utf-8"))
