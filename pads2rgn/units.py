"""Linear units and conversion between them.

Every unit is defined by its magnitude in a common reference unit of 0.1 nm,
kept as an exact fraction so that conversion chains do not accumulate error
in the multipliers themselves.
"""

from enum import Enum, auto
from fractions import Fraction

from .diagnostics import ConfigurationError


class UnitError(ConfigurationError):
    """A unit without a declared multiplier was used in a conversion."""


class PcbUnits(Enum):
    THOU = auto()
    MILLIMETER = auto()
    TEN_NANOMETERS = auto()
    INCH = auto()
    TWO_THIRDS_NANOMETER = auto()
    # Style-only values that are never converted
    ARBITRARY = auto()


# Magnitude of one unit expressed in 0.1 nm
_MULTIPLIERS = {
    PcbUnits.THOU: Fraction(254000),
    PcbUnits.MILLIMETER: Fraction(10000000),
    PcbUnits.TEN_NANOMETERS: Fraction(100),
    PcbUnits.INCH: Fraction(254000000),
    PcbUnits.TWO_THIRDS_NANOMETER: Fraction(20, 3),
}


def multiplier(units: PcbUnits) -> Fraction:
    """Return the size of one `units` in 0.1 nm."""
    try:
        return _MULTIPLIERS[units]
    except KeyError:
        raise UnitError(f"Bad coordinate units: {units}") from None


def ratio(from_units: PcbUnits, to_units: PcbUnits) -> Fraction:
    """Factor that turns a magnitude in from_units into one in to_units."""
    return multiplier(from_units) / multiplier(to_units)


def convert(value: float, from_units: PcbUnits, to_units: PcbUnits) -> float:
    """Convert a magnitude between units."""
    return float(value * ratio(from_units, to_units))
