"""Conversion options.

Options are fixed before a conversion starts and read-only while it runs.
They travel with the per-conversion diagnostics in a ConversionContext, so
two conversions in the same process never share state.
"""

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional

from .diagnostics import ConfigurationError, Diagnostics

# Top, inner, bottom: the stackup that means "every layer"
FOUR_LAYER_PATTERN = (-2, -1, 0)

STANDARD_PAD_FLAGS = "0 1"

# ARES7 rejects holes with outer dimension == drill, so drill-only holes get a ring (thou)
DRILL_RING_ALLOWANCE = 10


@dataclass(frozen=True)
class ConversionOptions:
    # Piece headers use the LINES layout (type count width linetype layer), as in SamacSys exports
    piece_header_compatibility: bool = False
    # Recognize the (-2, -1, 0) stackup as layer ALL
    four_layer_model: bool = True
    # Keep recognizing (-2, -1, 0) as ALL even when a custom layer model is active
    layer_model_override_for_all: bool = False
    # Layer codes that mean ALL when four_layer_model is off
    custom_layer_model: Optional[tuple] = None
    # Bind padstacks by terminal index first, falling back to the pin designator
    prioritize_padstack_binding_by_index: bool = False
    drill_ring_allowance: float = DRILL_RING_ALLOWANCE
    default_pad_flags: str = STANDARD_PAD_FLAGS

    def __post_init__(self):
        if self.custom_layer_model is not None:
            try:
                layers = tuple(int(x) for x in self.custom_layer_model)
            except (TypeError, ValueError):
                raise ConfigurationError(
                    f"Custom layer model must be a list of integers, got {self.custom_layer_model!r}"
                ) from None
            object.__setattr__(self, "custom_layer_model", layers)

    @property
    def all_layer_pattern(self) -> tuple:
        if self.four_layer_model or self.layer_model_override_for_all:
            return FOUR_LAYER_PATTERN
        if self.custom_layer_model is None:
            raise ConfigurationError("Custom layer model was activated, but not provided.")
        return self.custom_layer_model

    def validate(self):
        """Raise ConfigurationError for option combinations that cannot be used."""
        if not self.default_pad_flags.strip():
            raise ConfigurationError("Default pad flags must not be empty")
        if self.drill_ring_allowance < 0:
            raise ConfigurationError("Drill ring allowance must not be negative")
        if len(set(self.all_layer_pattern)) == 0:
            raise ConfigurationError("Layer model for ALL is empty")
        return self

    @classmethod
    def from_dict(cls, data: dict) -> "ConversionOptions":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"Unknown option(s): {', '.join(unknown)}")
        return cls(**data)

    @classmethod
    def from_json_file(cls, path: Path) -> "ConversionOptions":
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot read options from {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"Options file {path} must contain a JSON object")
        return cls.from_dict(data)


@dataclass
class ConversionContext:
    """Options plus the diagnostics collected while one document is converted."""
    options: ConversionOptions = field(default_factory=ConversionOptions)
    diagnostics: Diagnostics = field(default_factory=Diagnostics)
