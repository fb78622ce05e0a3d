"""
NEC Calculation Module

Code tables, wire/conduit calculators and hierarchy step validators.
"""

from .nec_tables import NECTables
from .nec_calculations import (
    Conductor,
    validate_wire_size,
    find_minimum_wire_size,
    validate_conduit_fill,
    find_minimum_conduit_size,
    max_fill_percentage,
    validate_voltage_step,
    validate_amperage_step,
    parse_voltage,
    parse_amperage,
    get_wire_size_recommendation,
)

__all__ = [
    "NECTables",
    "Conductor",
    "validate_wire_size",
    "find_minimum_wire_size",
    "validate_conduit_fill",
    "find_minimum_conduit_size",
    "max_fill_percentage",
    "validate_voltage_step",
    "validate_amperage_step",
    "parse_voltage",
    "parse_amperage",
    "get_wire_size_recommendation",
]
