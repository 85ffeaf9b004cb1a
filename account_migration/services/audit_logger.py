"""Run-scoped, append-only CSV audit trail."""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Tuple, Union

from pydantic import BaseModel, ValidationError

from ..models.audit import AuditStatus, parse_entry

logger = logging.getLogger(__name__)

HEADER = "timestamp,data"

_LEVELS = {
    AuditStatus.SUCCESS.value: logging.INFO,
    AuditStatus.INFO.value: logging.INFO,
    AuditStatus.WARNING.value: logging.WARNING,
    AuditStatus.ERROR.value: logging.ERROR,
}


class AuditLogger:
    """
    Writes one ``<ISO-8601>,<JSON>`` line per entry.

    ``record`` never raises: a failed write is reported through the
    Python logger and the batch carries on.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.counts = {status.value: 0 for status in AuditStatus}

    def start(self) -> None:
        """Truncate the log and write the header."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                f.write(HEADER + "\n")
        except OSError as e:
            logger.error(f"Could not initialize audit log {self.path}: {e}")

    def record(self, entry: BaseModel) -> None:
        """Append an entry."""
        try:
            payload = entry.model_dump(mode="json", exclude_none=True)
            status = payload.get("status")
            self.counts[status] = self.counts.get(status, 0) + 1

            line = f"{datetime.now(timezone.utc).isoformat()},{json.dumps(payload, default=str)}\n"
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line)

            logger.log(
                _LEVELS.get(status, logging.INFO),
                f"{payload.get('action')} {status}: {payload.get('message') or payload.get('error') or ''}".rstrip(),
            )
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to write audit entry to {self.path}: {e}")

    def count(self, status: AuditStatus) -> int:
        return self.counts.get(status.value, 0)


def iter_log_lines(path: Union[str, Path]) -> Iterator[Tuple[str, str]]:
    """Yield ``(timestamp, json_payload)`` pairs, skipping the header and blanks."""
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("timestamp"):
                continue
            comma = line.find(",")
            if comma <= 0:
                continue
            yield line[:comma], line[comma + 1:]


def read_entries(path: Union[str, Path], strict: bool = False) -> List[BaseModel]:
    """
    Parse an audit log back into typed entries.

    Args:
        path: Log file written by AuditLogger
        strict: Raise on malformed lines instead of skipping them
    """
    entries = []
    for timestamp, payload in iter_log_lines(path):
        try:
            entries.append(parse_entry(payload))
        except ValidationError as e:
            if strict:
                raise
            logger.debug(f"Skipping malformed audit line at {timestamp}: {e}")
    return entries

