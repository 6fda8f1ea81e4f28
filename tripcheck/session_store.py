import json
import logging
from pathlib import Path
from typing import Any


logger = logging.getLogger(__name__)


class SessionStore:
    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> dict[str, Any] | None:
        if not self.exists():
            return None
        with self.path.open("r", encoding="utf-8") as infile:
            snapshot = json.load(infile)
        logger.info("loaded saved session", extra={"session_file": str(self.path)})
        return snapshot

    def save(self, snapshot: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as outfile:
            json.dump(snapshot, outfile, indent=2)
            outfile.write("\n")
        tmp_path.replace(self.path)
        logger.info("session saved", extra={"session_file": str(self.path)})

    def delete(self) -> bool:
        if not self.exists():
            return False
        self.path.unlink()
        logger.info("session deleted", extra={"session_file": str(self.path)})
        return True
