"""Access point table loader - administrator-maintained radio/AP location map."""

import json
import re
from typing import Dict, Any, Optional, List
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

MAC_PATTERN = re.compile(r"^([0-9A-F]{2}:){5}[0-9A-F]{2}$")


def normalize_bssid(identifier: Optional[str]) -> Optional[str]:
    """Upper-case a radio identifier and use ``:`` as the octet separator.

    Returns None when the identifier is not a six-octet MAC address.
    """
    if not identifier:
        return None
    candidate = identifier.strip().upper().replace("-", ":")
    if not MAC_PATTERN.match(candidate):
        return None
    return candidate


class AccessPointTableLoader:
    """Reads and writes the JSON table mapping AP identifiers to sector/floor.

    File layout::

        {"access_points": {"AA:BB:CC:DD:EE:FF": {"sector": "UTI", "floor": "2"}}}
    """

    def __init__(self, table_path: Optional[str] = None):
        """Initialize AccessPointTableLoader.

        Args:
            table_path: Path to the JSON table. If None, uses default.
        """
        self.table_file = Path(table_path) if table_path else Path("config/access_points.json")
        self._ensure_table()

    def _ensure_table(self) -> None:
        """Ensure the table file exists."""
        try:
            self.table_file.parent.mkdir(parents=True, exist_ok=True)
            if not self.table_file.exists():
                self._write({"access_points": {}})
                logger.info(f"Created empty access point table at {self.table_file}")
        except OSError as e:
            logger.error(f"Failed to create access point table: {e}")
            raise

    def _write(self, content: Dict[str, Any]) -> None:
        with open(self.table_file, 'w') as f:
            json.dump(content, f, indent=2, sort_keys=True)

    def _read(self) -> Dict[str, Any]:
        with open(self.table_file, 'r') as f:
            return json.load(f)

    def load(self) -> Dict[str, Dict[str, str]]:
        """Load the table keyed by normalized AP identifier.

        Entries with malformed identifiers are skipped with a warning.

        Returns:
            Mapping of identifier to ``{"sector": ..., "floor": ...}``
        """
        try:
            raw = self._read().get("access_points", {})
        except FileNotFoundError:
            logger.warning("Access point table not found, creating empty table")
            self._ensure_table()
            return {}

        table = {}
        for identifier, location in raw.items():
            key = normalize_bssid(identifier)
            if key is None:
                logger.warning(f"Skipping malformed access point identifier: {identifier}")
                continue
            table[key] = {
                "sector": str(location.get("sector", "")),
                "floor": str(location.get("floor", "")),
            }
        logger.debug(f"Loaded {len(table)} access point mappings")
        return table

    def update_entry(self, identifier: str, sector: str, floor: str) -> bool:
        """Add or replace one access point entry.

        Args:
            identifier: AP identifier (MAC address)
            sector: Sector name
            floor: Floor label

        Returns:
            True if the entry was written, False if the identifier is malformed
        """
        key = normalize_bssid(identifier)
        if key is None:
            logger.warning(f"Refusing to store malformed access point identifier: {identifier}")
            return False

        content = self._read()
        content.setdefault("access_points", {})[key] = {"sector": sector, "floor": floor}
        self._write(content)
        logger.info(f"Updated access point {key} -> {sector}/{floor}")
        return True

    def validate(self) -> List[str]:
        """Validate the table and return errors.

        Returns:
            List of error messages (empty if no errors)
        """
        errors = []
        try:
            content = self._read()
        except (OSError, ValueError) as e:
            return [f"Access point table unreadable: {e}"]

        entries = content.get("access_points")
        if not isinstance(entries, dict):
            return ["access_points must be an object"]

        for identifier, location in entries.items():
            if normalize_bssid(identifier) is None:
                errors.append(f"access_points.{identifier} is not a MAC address")
            if not isinstance(location, dict) or "sector" not in location:
                errors.append(f"access_points.{identifier} must define a sector")

        return errors
