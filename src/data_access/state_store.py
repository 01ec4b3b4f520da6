# src/data_access/state_store.py
"""
File-backed store for the last successful import time.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from src.models.exceptions import StateWriteError
from src.models.schemas import ImportState


class StateStore:
    """Persist a single ImportState record as JSON. No history is kept."""

    def __init__(self, state_file_path: str, logger: Optional[logging.Logger] = None):
        self.state_file = Path(state_file_path)
        self.logger = logger or logging.getLogger(__name__)

    def get_last_import_time(self) -> Optional[datetime]:
        """
        Get the timestamp of the last successful import.

        Returns:
            The stored timestamp, or None if the file is missing or unreadable
        """
        if not self.state_file.exists():
            self.logger.debug(f"State file {self.state_file} not found")
            return None

        try:
            state = ImportState.model_validate_json(self.state_file.read_text(encoding="utf-8"))
        except (OSError, ValueError, ValidationError) as e:
            self.logger.debug(f"State file not available: {e}")
            return None

        self.logger.debug(f"Found last import time: {state.last_import_time.isoformat()}")
        return state.last_import_time

    def update_last_import_time(self, timestamp: datetime) -> bool:
        """
        Record a successful import.

        The stored time only moves forward: an older timestamp leaves the file untouched.

        Args:
            timestamp: End of the window that was fully imported

        Returns:
            True if the state is at or past the timestamp, False if the write failed
        """
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)

        current = self.get_last_import_time()
        if current is not None and timestamp < current:
            self.logger.info(
                f"Keeping last import time {current.isoformat()}; "
                f"{timestamp.isoformat()} is older"
            )
            return True

        state = ImportState(
            last_import_time=timestamp,
            updated_at=datetime.now(timezone.utc)
        )

        try:
            self._write_state(state)
        except StateWriteError as e:
            self.logger.error(str(e))
            return False

        self.logger.debug(f"Updated last import time to {timestamp.isoformat()}")
        return True

    def reset_state(self) -> bool:
        """
        Delete the persisted state. A missing file is not an error.

        Returns:
            True if no state remains, False if it could not be removed
        """
        try:
            self.state_file.unlink(missing_ok=True)
        except OSError as e:
            self.logger.error(f"Failed to reset state: {e}")
            return False

        self.logger.info("Import state has been reset")
        return True

    def _write_state(self, state: ImportState) -> None:
        try:
            self.state_file.parent.mkdir(parents=True, exist_ok=True)
            self.state_file.write_text(
                state.model_dump_json(by_alias=True, indent=2),
                encoding="utf-8"
            )
        except OSError as e:
            raise StateWriteError(str(self.state_file), str(e)) from e
