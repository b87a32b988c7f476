from __future__ import annotations

import logging
import os
import pathlib
import threading
from typing import List, Union

logger = logging.getLogger(__name__)


class DenialLog:
    """
    Append-only, de-duplicated audit file of denied query names.

    Inputs:
        path: log file location; created (with parent directories) on first write.
    Outputs:
        DenialLog instance

    Notes:
        record_denied() reads the whole file before appending, so names written
        by earlier runs are never repeated. The read-then-append sequence runs
        under a single lock. Undecodable bytes already in the file are kept as
        surrogate escapes so the scan still completes. Write failures are logged
        and swallowed.

    Example use:
        >>> log = DenialLog("denied.log")
        >>> log.record_denied("bad.example.")  # doctest: +SKIP
        True
        >>> log.record_denied("bad.example.")  # doctest: +SKIP
        False
    """

    def __init__(self, path: Union[str, pathlib.Path]) -> None:
        self.path = pathlib.Path(path)
        self._lock = threading.Lock()

    def record_denied(self, name: str) -> bool:
        """
        Brief: Append name to the log unless an identical line already exists.

        Inputs:
          - name: denied query name.

        Outputs:
          - bool: True when a new line was written, False when the name was
            already present or the log could not be written.
        """
        with self._lock:
            try:
                parent = self.path.parent
                if str(parent) and not parent.exists():
                    os.makedirs(parent, exist_ok=True)
                with self.path.open("a+", encoding="utf-8", errors="surrogateescape") as f:
                    f.seek(0)
                    for raw_line in f:
                        if raw_line.strip() == name:
                            return False
                    f.write(name + "\n")
            except (OSError, UnicodeError) as e:
                logger.warning("Failed to write %s to %s: %s", name, self.path, e)
                return False
        logger.info("Denied %s (logged to %s)", name, self.path)
        return True

    def entries(self) -> List[str]:
        """Return the logged names in file order; empty when the log is absent."""
        with self._lock:
            try:
                with self.path.open("r", encoding="utf-8", errors="surrogateescape") as f:
                    return [line.strip() for line in f if line.strip()]
            except FileNotFoundError:
                return []
