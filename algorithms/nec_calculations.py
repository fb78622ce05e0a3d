"""
NEC Calculation Algorithms
Wire sizing, conduit fill and hierarchy step checks for the electrical survey.

All functions are pure: invalid input is reported as {"valid": False, "error": ...}
rather than raised, so callers can show it inline.
"""

import math
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from algorithms.nec_tables import NECTables


# Initialize NEC tables
tables = NECTables()

# NEC 210.20(A) continuous load multiplier
CONTINUOUS_LOAD_FACTOR = 1.25

# Transformer secondary tap variance allowed before a step-up is reported
VOLTAGE_STEP_TOLERANCE = 1.05

# Feeder/breaker oversizing allowed before an amperage mismatch is reported
AMPERAGE_STEP_TOLERANCE = 1.25

# Fill above this is legal but makes pulling harder
CONDUIT_FILL_ADVISORY_PERCENT = 30

# Values the extraction service uses when it could not read a field
SENTINEL_VALUES = {"unknown", "not available", "n/a", "none", "null"}


@dataclass(frozen=True)
class Conductor:
    """A group of same-gauge conductors sharing one conduit run."""
    wire_size: str
    count: int = 1


def validate_wire_size(wire_size: Optional[str], amperage: Optional[float],
                       continuous_load: bool = True) -> Dict[str, Any]:
    """
    Validate a wire size against a load amperage.

    Applies the NEC 210.20(A) 125% rule for continuous loads.

    Args:
        wire_size: Wire size (e.g. "3/0 AWG")
        amperage: Load amperage
        continuous_load: True if the load runs for 3+ hours

    Returns:
        Dictionary with validation results. On failure includes "error",
        "suggested_size" and "required_amps"; on success includes
        "actual_amps", "required_amps" and "margin".

    Example:
        >>> validate_wire_size("10 AWG", 24, continuous_load=True)["valid"]
        True
    """
    if not wire_size or not amperage or amperage < 0:
        return {"valid": False, "error": "Wire size and amperage are required"}

    wire_amps = tables.get_ampacity(wire_size)
    if wire_amps is None:
        return {"valid": False, "error": f"Unknown wire size: {wire_size}"}

    required_amps = amperage * CONTINUOUS_LOAD_FACTOR if continuous_load else amperage

    if wire_amps < required_amps:
        error = f"Wire size {wire_size} ({wire_amps}A) is undersized for {amperage}A load"
        if continuous_load:
            error += f" (requires {required_amps:.0f}A capacity for continuous load)"

        return {
            "valid": False,
            "error": error,
            "suggested_size": find_minimum_wire_size(required_amps),
            "required_amps": math.ceil(required_amps),
        }

    return {
        "valid": True,
        "actual_amps": wire_amps,
        "required_amps": math.ceil(required_amps),
        "margin": wire_amps - required_amps,
    }


def find_minimum_wire_size(required_amps: float) -> str:
    """
    Find the smallest wire size whose ampacity meets the requirement.

    Never fails: when the requirement exceeds the largest tabulated gauge,
    the largest gauge is returned. That fallback is advisory only.

    Example:
        >>> find_minimum_wire_size(100)
        '3 AWG'
    """
    for size, amps in tables.ampacity.items():
        if amps >= required_amps:
            return size
    return tables.wire_sizes[-1]


def max_fill_percentage(conductor_count: int) -> int:
    """
    NEC Chapter 9 Table 1 fill limit for a number of conductors.

    1 conductor -> 53%, 2 conductors -> 31%, 3 or more -> 40%.
    """
    if conductor_count >= 3:
        return 40
    if conductor_count == 2:
        return 31
    return 53


def _conductor_totals(conductors: Iterable[Conductor]) -> Tuple[float, int, Optional[str]]:
    """Sum wire area and conductor count. Returns (area, count, error)."""
    total_area = 0.0
    total_count = 0
    for conductor in conductors:
        wire_area = tables.get_wire_area(conductor.wire_size)
        if wire_area is None:
            return 0.0, 0, f"Unknown wire size: {conductor.wire_size}"
        count = 1 if conductor.count is None else conductor.count
        if count < 1:
            return 0.0, 0, f"Conductor count must be at least 1: {conductor.wire_size} x {count}"
        total_area += wire_area * count
        total_count += count
    return total_area, total_count, None


def validate_conduit_fill(conduit_size: Optional[str],
                          conductors: Optional[List[Conductor]]) -> Dict[str, Any]:
    """
    Validate conduit fill percentage for a set of conductors.

    The percentage is the conductor area over the tabulated conduit area.
    The tabulated area is already the 40% fill allowance, and the
    count-dependent limit is compared against that ratio as-is.

    Args:
        conduit_size: Conduit trade size (e.g. '2"')
        conductors: Conductor groups in the run

    Returns:
        Dictionary with "valid", "fill_percentage" (one decimal) and
        "max_fill_percentage"; "warning" when fill is above 30% but legal;
        "error" and "suggested_size" on violation.

    Example:
        >>> validate_conduit_fill('1/2"', [Conductor("10 AWG", 3)])["valid"]
        False
    """
    if not conduit_size or not conductors:
        return {"valid": False, "error": "Conduit size and conductors are required"}

    conduit_area = tables.get_conduit_area(conduit_size)
    if conduit_area is None:
        return {"valid": False, "error": f"Unknown conduit size: {conduit_size}"}

    total_area, total_count, error = _conductor_totals(conductors)
    if error:
        return {"valid": False, "error": error}

    fill = (total_area / conduit_area) * 100
    max_fill = max_fill_percentage(total_count)

    if fill > max_fill:
        return {
            "valid": False,
            "fill_percentage": round(fill, 1),
            "max_fill_percentage": max_fill,
            "error": f"Conduit fill {fill:.1f}% exceeds {max_fill}% NEC limit",
            "suggested_size": find_minimum_conduit_size(conductors),
        }

    result = {
        "valid": True,
        "fill_percentage": round(fill, 1),
        "max_fill_percentage": max_fill,
    }

    if fill > CONDUIT_FILL_ADVISORY_PERCENT:
        result["warning"] = (
            f"Conduit fill {fill:.1f}% is acceptable but consider larger size "
            f"for easier wire pulling"
        )

    return result


def find_minimum_conduit_size(conductors: List[Conductor]) -> Optional[str]:
    """
    Find the smallest conduit size whose fill stays within the NEC limit.

    Returns the largest size when nothing fits, or None when a conductor
    gauge is not tabulated or a count is below 1.
    """
    total_area, total_count, error = _conductor_totals(conductors)
    if error:
        return None

    max_fill = max_fill_percentage(total_count)
    for size, area in tables.conduit_fill_area.items():
        if (total_area / area) * 100 <= max_fill:
            return size
    return tables.conduit_sizes[-1]


def validate_voltage_step(parent_voltage: float, child_voltage: float) -> Dict[str, Any]:
    """
    Validate voltage step-down between upstream and downstream equipment.

    Voltage should step down or stay the same. A missing (zero) value on
    either side passes with a warning.

    Example:
        >>> validate_voltage_step(480, 504)["valid"]
        True
    """
    if not parent_voltage or not child_voltage:
        return {"valid": True, "warning": "Missing voltage information"}

    if child_voltage > parent_voltage * VOLTAGE_STEP_TOLERANCE:
        return {
            "valid": False,
            "error": (
                f"Voltage step-up detected: {child_voltage}V downstream "
                f"from {parent_voltage}V upstream"
            ),
            "violation_type": "voltage_step_up",
        }

    return {"valid": True}


def validate_amperage_step(parent_amps: float, child_amps: float) -> Dict[str, Any]:
    """
    Validate amperage coordination between upstream and downstream equipment.

    Downstream ratings may exceed upstream by up to 25%. A missing (zero)
    value on either side passes with a warning.

    Example:
        >>> validate_amperage_step(200, 251)["violation_type"]
        'amperage_mismatch'
    """
    if not parent_amps or not child_amps:
        return {"valid": True, "warning": "Missing amperage information"}

    if child_amps > parent_amps * AMPERAGE_STEP_TOLERANCE:
        return {
            "valid": False,
            "error": (
                f"Downstream amperage ({child_amps}A) exceeds upstream capacity "
                f"({parent_amps}A) by more than 25%"
            ),
            "warning": "Verify feeder sizing and overcurrent protection coordination",
            "violation_type": "amperage_mismatch",
        }

    return {"valid": True}


def _is_sentinel(value: Union[str, int, float, None]) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == "" or value.strip().lower() in SENTINEL_VALUES
    return False


def parse_voltage(voltage: Union[str, int, float, None]) -> int:
    """
    Parse a nameplate voltage string to its line-to-line value.

    Handles formats like "120/240V", "208Y/120V", "480V", "277/480V" by
    returning the highest number present. Returns 0 when unreadable.

    Example:
        >>> parse_voltage("208Y/120V")
        208
    """
    if _is_sentinel(voltage):
        return 0
    if isinstance(voltage, (int, float)):
        return int(voltage)

    matches = re.findall(r"\d+", voltage)
    if not matches:
        return 0

    return max(int(n) for n in matches)


def parse_amperage(amperage: Union[str, int, float, None]) -> int:
    """
    Parse a nameplate amperage string to a number.

    Handles formats like "400A", "200 A", "225-Amp" by returning the first
    number present. Returns 0 when unreadable.

    Example:
        >>> parse_amperage("225-Amp")
        225
    """
    if _is_sentinel(amperage):
        return 0
    if isinstance(amperage, (int, float)):
        return int(amperage)

    match = re.search(r"(\d+)", amperage)
    return int(match.group(1)) if match else 0


def get_wire_size_recommendation(amperage: float, distance_feet: float = 100,
                                 voltage: float = 240,
                                 max_voltage_drop: float = 3) -> Dict[str, Any]:
    """
    Recommend a wire size for a load, flagging runs long enough that
    voltage drop may govern over ampacity.

    Args:
        amperage: Load amperage
        distance_feet: One-way distance in feet
        voltage: System voltage
        max_voltage_drop: Acceptable voltage drop percentage

    Returns:
        Recommendation dictionary with the minimum size by ampacity and notes
    """
    required_amps = amperage * CONTINUOUS_LOAD_FACTOR

    recommendation = {
        "min_size_by_ampacity": find_minimum_wire_size(required_amps),
        "required_amps": math.ceil(required_amps),
        "distance_feet": distance_feet,
        "voltage": voltage,
        "max_voltage_drop": max_voltage_drop,
        "notes": [],
    }

    if distance_feet > 100:
        recommendation["notes"].extend([
            f"Long run ({distance_feet}ft) - consider voltage drop calculations",
            "May require larger wire size than ampacity alone suggests",
        ])

    return recommendation
