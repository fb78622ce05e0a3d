"""
NEC Tables Data Loader
Provides read-only access to the NEC tables used by the survey calculations.
"""

import json
from pathlib import Path
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional


class NECTables:
    """Class to load and access NEC code tables."""

    def __init__(self, data_dir: Optional[str] = None):
        """
        Initialize the NEC tables loader.

        Args:
            data_dir: Directory containing NEC table JSON files.
                     If None, uses the data/ directory shipped with this package.
        """
        if data_dir is None:
            data_dir = Path(__file__).resolve().parent / "data"

        self.data_dir = Path(data_dir)
        self._ampacity = None
        self._cross_section = None
        self._conduit_fill = None

        self._load_tables()

    def _load_tables(self):
        """Load all NEC tables from JSON files."""
        # Insertion order of the JSON objects is the ascending capacity order
        self._ampacity = MappingProxyType(
            self._load_json("wire_ampacity.json")["75c_copper"]
        )
        self._cross_section = MappingProxyType(
            self._load_json("wire_cross_section.json")["thhn"]
        )
        self._conduit_fill = MappingProxyType(
            self._load_json("conduit_fill.json")["40_percent_fill"]
        )

        if list(self._ampacity) != list(self._cross_section):
            raise ValueError("Wire ampacity and cross-section tables list different gauges")

    def _load_json(self, filename: str) -> Dict:
        """Load a JSON file from the data directory."""
        filepath = self.data_dir / filename
        try:
            with open(filepath, 'r') as f:
                return json.load(f)
        except FileNotFoundError:
            raise FileNotFoundError(f"NEC table file not found: {filepath}")
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {filepath}: {e}")

    @property
    def ampacity(self) -> Mapping[str, int]:
        """Wire gauge -> ampacity (A), 75°C copper, smallest gauge first."""
        return self._ampacity

    @property
    def wire_cross_section(self) -> Mapping[str, float]:
        """Wire gauge -> THHN cross-sectional area (in²)."""
        return self._cross_section

    @property
    def conduit_fill_area(self) -> Mapping[str, float]:
        """Conduit trade size -> usable area (in²) at the 40% fill baseline."""
        return self._conduit_fill

    @property
    def wire_sizes(self) -> List[str]:
        """Wire gauge labels in ascending capacity order."""
        return list(self._ampacity)

    @property
    def conduit_sizes(self) -> List[str]:
        """Conduit trade sizes in ascending order."""
        return list(self._conduit_fill)

    def get_ampacity(self, wire_size: str) -> Optional[int]:
        """
        Get the tabulated ampacity for a wire gauge.

        Args:
            wire_size: Gauge label, e.g. "3/0 AWG" or "250 kcmil"

        Returns:
            Ampacity in amps, or None if the gauge is not tabulated
        """
        return self._ampacity.get(wire_size)

    def get_wire_area(self, wire_size: str) -> Optional[float]:
        """
        Get the cross-sectional area for a wire gauge.

        Returns:
            Area in square inches, or None if the gauge is not tabulated
        """
        return self._cross_section.get(wire_size)

    def get_conduit_area(self, conduit_size: str) -> Optional[float]:
        """
        Get the usable fill area for a conduit trade size.

        The value is already reduced to the 40% fill allowance.

        Returns:
            Area in square inches, or None if the size is not tabulated
        """
        return self._conduit_fill.get(conduit_size)


__all__ = ["NECTables"]
