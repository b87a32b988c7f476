from __future__ import annotations

import logging
import pathlib
import threading
from typing import Dict, Optional, Union

logger = logging.getLogger(__name__)


class LoadError(Exception):
    """
    Brief: The local records file could not be loaded.

    Inputs:
    - message: description of the failure

    Outputs:
    - Exception instance
    """

    pass


class MalformedRecordError(LoadError):
    """
    Brief: A non-comment line of the records file did not hold exactly two fields.

    Inputs:
    - line: the offending line (stripped)
    - lineno: 1-based line number within the file
    - path: optional file path for the error message

    Outputs:
    - Exception instance with line/lineno/path attributes
    """

    def __init__(self, line: str, lineno: int = 0, path: Optional[str] = None):
        self.line = line
        self.lineno = lineno
        self.path = path
        where = f"{path}:{lineno}" if path else f"line {lineno}"
        super().__init__(f"invalid record at {where}: {line!r}")


class RecordStore:
    """
    Thread-safe in-memory mapping of domain name -> address string.

    Inputs:
        None (constructor)
    Outputs:
        RecordStore instance

    Notes:
        Seeded once from a records file via load(); afterwards only the
        resolution engine writes to it (insert after an external answer).
        Entries never expire. All operations are synchronized with an RLock.

    Example use:
        >>> store = RecordStore()
        >>> store.insert("one.test.", "10.0.0.1")
        >>> store.lookup("one.test.")
        '10.0.0.1'
        >>> store.lookup("two.test.") is None
        True
    """

    def __init__(self) -> None:
        self._records: Dict[str, str] = {}
        self._lock = threading.RLock()

    def load(self, path: Union[str, pathlib.Path]) -> int:
        """
        Brief: Replace the table with the contents of a records file.

        Inputs:
          - path: file with one '<name> <address>' record per line. Blank lines
            and lines starting with '#' are skipped.

        Outputs:
          - int: number of records loaded.

        Raises:
          - MalformedRecordError: a non-comment line did not split into exactly
            two whitespace-separated fields. Nothing is loaded in that case.
          - LoadError: the file could not be read or is not valid UTF-8.

        Example:
          >>> store = RecordStore()
          >>> store.load("dns_records.txt")  # doctest: +SKIP
          2
        """
        records_path = pathlib.Path(path)
        mapping: Dict[str, str] = {}
        try:
            with records_path.open("r", encoding="utf-8") as f:
                for lineno, raw_line in enumerate(f, start=1):
                    line = raw_line.strip()
                    if not line or line.startswith("#"):
                        continue
                    fields = line.split()
                    if len(fields) != 2:
                        raise MalformedRecordError(line, lineno, str(records_path))
                    # Later lines override earlier ones by assignment
                    mapping[fields[0]] = fields[1]
        except (OSError, UnicodeDecodeError) as e:
            raise LoadError(f"failed to read {records_path}: {e}") from e

        with self._lock:
            self._records = mapping
        logger.debug("Loaded %d records from %s", len(mapping), records_path)
        return len(mapping)

    def lookup(self, name: str) -> Optional[str]:
        """Return the address stored for name (exact match) or None."""
        with self._lock:
            return self._records.get(name)

    def insert(self, name: str, address: str) -> None:
        """Insert or overwrite the address for name."""
        with self._lock:
            self._records[name] = address

    def snapshot(self) -> Dict[str, str]:
        """Return a copy of the current table."""
        with self._lock:
            return dict(self._records)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._records
