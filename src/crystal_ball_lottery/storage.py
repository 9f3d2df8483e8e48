from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Tuple

from .errors import PersistenceFailed
from .ledger import WinnerRecord

log = logging.getLogger(__name__)

STATE_VERSION = 1


class JsonStateStore:
    """
    Ball counts and the winners history in one JSON document.

    Every save replaces the whole document: it is written to a temporary file
    next to the target and moved over it, so a crash leaves either the old or
    the new snapshot on disk.
    """

    def __init__(self, path: str | os.PathLike) -> None:
        self.path = Path(path)

    def load(self) -> Tuple[Dict[str, int], List[WinnerRecord]]:
        if not self.path.exists():
            log.info("No state file at %s, starting empty.", self.path)
            return {}, []

        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)

        wins = {str(addr): int(count) for addr, count in data.get("wins", {}).items()}
        winners = [
            WinnerRecord(address=str(w["address"]), percentage=float(w["percentage"]))
            for w in data.get("winners", [])
        ]
        log.info("Loaded %d ball holders and %d winners from %s.", len(wins), len(winners), self.path)
        return wins, winners

    def save(self, wins: Mapping[str, int], winners: Iterable[WinnerRecord]) -> None:
        data: Dict[str, Any] = {
            "version": STATE_VERSION,
            "wins": dict(wins),
            "winners": [{"address": w.address, "percentage": w.percentage} for w in winners],
        }
        directory = self.path.parent
        tmp_name = None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".state-", suffix=".json", dir=directory)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_name, self.path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise PersistenceFailed(f"Could not write state to {self.path}: {e}") from e
        log.debug("State saved to %s.", self.path)
