# driftwatch/services/live_state.py
"""
Live State Store
----------------
Reads the observed configuration from a JSON file and writes a corrected
snapshot back atomically (temporary file in the same directory, then
``os.replace``), so a crash never leaves a half-written file behind.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Union

from driftwatch.core.drift.types import LiveState
from driftwatch.core.exceptions import PersistenceError, ValidationError

logger = logging.getLogger(__name__)


class LiveStateStore:
    """File backed source and sink of live-state snapshots."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> LiveState:
        """
        Read the live-state file.

        A missing file is an empty snapshot: nothing has been provisioned yet.

        Raises:
            ValidationError: If the file is not a JSON object
            PersistenceError: If the file exists but cannot be read
        """
        if not self.path.exists():
            logger.warning(f"Live state file {self.path} not found, treating it as empty")
            return LiveState()

        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as e:
            logger.error(f"Error reading live state: {str(e)}")
            raise PersistenceError(f"Could not read live state {self.path}: {str(e)}") from e
        except UnicodeDecodeError as e:
            raise ValidationError(
                f"Live state {self.path} is not valid UTF-8: {str(e)}",
                source=str(self.path)
            ) from e

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValidationError(
                f"Live state {self.path} is not valid JSON: {e.msg}",
                source=str(self.path)
            ) from e

        if not isinstance(data, dict):
            raise ValidationError(
                f"Live state {self.path} must be a JSON object keyed by resource name",
                source=str(self.path)
            )

        logger.info(f"Loaded live state for {len(data)} resources from {self.path}")
        return LiveState(resources=data)

    def save(self, state: LiveState) -> None:
        """
        Replace the live-state file with ``state`` in one atomic step.

        Raises:
            PersistenceError: If the file cannot be written
        """
        payload = json.dumps(state.to_dict(), indent=2)
        directory = self.path.parent
        tmp_path = None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=directory,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False
            ) as handle:
                tmp_path = handle.name
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, self.path)
        except OSError as e:
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            logger.error(f"Error writing live state: {str(e)}")
            raise PersistenceError(f"Could not write live state {self.path}: {str(e)}") from e

        logger.info(f"Live state written to {self.path}")
