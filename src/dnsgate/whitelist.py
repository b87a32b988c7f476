from __future__ import annotations

import logging
import pathlib
from typing import List, Union

logger = logging.getLogger(__name__)


class WhitelistReadError(Exception):
    """
    Brief: The whitelist file could not be read.

    Inputs:
    - message: description of the failure

    Outputs:
    - Exception instance
    """

    pass


class Whitelist:
    """
    Brief: Decide whether a domain may be resolved by the external resolver.

    The whitelist file is re-read on every check so edits take effect without
    a restart. Each non-comment line is a domain name or suffix. A name is
    permitted when it equals an entry or ends with it as a plain string, so
    an entry 'example.com' permits 'sub.example.com' and also
    'notexample.com' (suffixes are not aligned on label boundaries).

    Inputs:
      - path: whitelist file location.

    Outputs:
      - Whitelist instance.

    Example use:
        >>> wl = Whitelist("whitelist.txt")
        >>> wl.is_permitted("www.google.com.")  # doctest: +SKIP
        True
    """

    def __init__(self, path: Union[str, pathlib.Path]) -> None:
        self.path = pathlib.Path(path)

    def entries(self) -> List[str]:
        """
        Brief: Read the whitelist entries in file order.

        Inputs:
          - None (reads self.path).

        Outputs:
          - list[str]: stripped entries, blank and '#' lines removed.

        Raises:
          - WhitelistReadError when the file cannot be opened, read or decoded.
        """
        try:
            with self.path.open("r", encoding="utf-8") as f:
                lines = [raw.strip() for raw in f]
        except (OSError, UnicodeDecodeError) as e:
            raise WhitelistReadError(f"failed to read {self.path}: {e}") from e
        return [line for line in lines if line and not line.startswith("#")]

    def is_permitted(self, name: str) -> bool:
        """
        Brief: Return True when name matches an entry exactly or by suffix.

        Inputs:
          - name: normalized query name (a trailing dot is ignored).

        Outputs:
          - bool: True on the first matching entry; False when nothing matches
            or the whitelist cannot be read.
        """
        try:
            entries = self.entries()
        except WhitelistReadError as e:
            logger.warning("Whitelist unavailable, denying %s: %s", name, e)
            return False

        candidate = name.rstrip(".")
        for entry in entries:
            suffix = entry.rstrip(".")
            if not suffix:
                continue
            if candidate == suffix or candidate.endswith(suffix):
                logger.debug("%s permitted by whitelist entry %r", name, entry)
                return True
        return False
