"""Intermediate data model for PCB conversion.

Every geometric quantity carries the unit it is currently expressed in.
Pads, traces and graphics keep separate tags for their coordinates and for
their dimensions (widths, diameters); converting changes the tag and the
stored magnitudes together.
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Optional, Union

from .units import PcbUnits, convert, ratio


class PcbLayer(Enum):
    DRILL = -1
    ALL = 0
    BOTTOM = 1
    INTERNAL_BOTTOM = 2
    INTERNAL_TOP = 3
    TOP = 4


@dataclass(frozen=True)
class ExtendedLayer:
    """Copper layer outside the PcbLayer set, by its source layer number."""
    index: int


Layer = Union[PcbLayer, ExtendedLayer]


class GraphicsLayer(Enum):
    BOTTOM_SILK = auto()
    TOP_SILK = auto()
    BOUNDARY = auto()
    OTHER = auto()


class PadShape(Enum):
    CIRCULAR_TH = auto()
    RECTANGULAR_TH = auto()
    RECTANGULAR_SMT = auto()
    CIRCULAR_SMT = auto()


class LineType(Enum):
    SOLID = auto()
    DASHED = auto()
    DOTTED = auto()


@dataclass(frozen=True)
class Point:
    x: float = 0.0
    y: float = 0.0

    def scaled(self, factor) -> "Point":
        return Point(float(self.x * factor), float(self.y * factor))


@dataclass
class PadStyle:
    shape: PadShape = PadShape.CIRCULAR_SMT
    units: PcbUnits = PcbUnits.THOU
    # Outer dimension, also width for rectangular pads
    dim1: float = 0.0
    # Inner dimension, also height for rectangular pads
    dim2: float = 0.0
    # Drill hole diameter (0 = none)
    drill: float = 0.0

    def set_units(self, units: PcbUnits):
        self.dim1 = convert(self.dim1, self.units, units)
        self.dim2 = convert(self.dim2, self.units, units)
        self.drill = convert(self.drill, self.units, units)
        self.units = units


@dataclass
class Pad:
    number: str = ""
    coordinate_units: PcbUnits = PcbUnits.THOU
    x: float = 0.0
    y: float = 0.0
    layer: Layer = PcbLayer.TOP
    style: PadStyle = field(default_factory=PadStyle)
    # Free-form flags written verbatim; None = writer default
    flags: Optional[str] = None

    @property
    def units(self) -> PcbUnits:
        return self.style.units

    @property
    def pos(self) -> Point:
        return Point(self.x, self.y)

    def set_coordinate_units(self, units: PcbUnits):
        self.x = convert(self.x, self.coordinate_units, units)
        self.y = convert(self.y, self.coordinate_units, units)
        self.coordinate_units = units

    def set_units(self, units: PcbUnits):
        self.style.set_units(units)


@dataclass
class Trace:
    layer: Layer = PcbLayer.TOP
    thickness: float = 0.0
    units: PcbUnits = PcbUnits.THOU
    coordinate_units: PcbUnits = PcbUnits.THOU
    points: list = field(default_factory=list)  # list of Point

    @property
    def segments(self) -> int:
        return len(self.points)

    def set_coordinate_units(self, units: PcbUnits):
        factor = ratio(self.coordinate_units, units)
        self.points = [p.scaled(factor) for p in self.points]
        self.coordinate_units = units

    def set_units(self, units: PcbUnits):
        self.thickness = convert(self.thickness, self.units, units)
        self.units = units


@dataclass
class SilkLine:
    start: Point = field(default_factory=Point)
    end: Point = field(default_factory=Point)
    units: PcbUnits = PcbUnits.THOU
    coordinate_units: PcbUnits = PcbUnits.THOU
    thickness: float = 0.0
    line_type: LineType = LineType.SOLID

    def set_coordinate_units(self, units: PcbUnits):
        factor = ratio(self.coordinate_units, units)
        self.start = self.start.scaled(factor)
        self.end = self.end.scaled(factor)
        self.coordinate_units = units

    def set_units(self, units: PcbUnits):
        self.thickness = convert(self.thickness, self.units, units)
        self.units = units


@dataclass
class Graphics:
    """Silkscreen / outline polyline made of individual lines."""
    units: PcbUnits = PcbUnits.THOU
    coordinate_units: PcbUnits = PcbUnits.THOU
    layer: GraphicsLayer = GraphicsLayer.TOP_SILK
    lines: list = field(default_factory=list)  # list of SilkLine

    def synchronize_units(self, units: PcbUnits):
        for line in self.lines:
            if line.units != units:
                line.set_units(units)
        self.units = units

    def synchronize_coordinate_units(self, units: PcbUnits):
        for line in self.lines:
            if line.coordinate_units != units:
                line.set_coordinate_units(units)
        self.coordinate_units = units


@dataclass
class PcbDesign:
    pads: list = field(default_factory=list)  # list of Pad
    traces: list = field(default_factory=list)  # list of Trace
    graphics: list = field(default_factory=list)  # list of Graphics
    # May differ from the entities' units until synchronized
    coordinate_units: PcbUnits = PcbUnits.THOU

    def get_layers(self, traces_only: bool = False) -> list:
        """Layers mentioned by pads and traces (or traces only), in first-appearance order."""
        layers = []
        items = self.traces if traces_only else self.pads + self.traces
        for item in items:
            if item.layer not in layers:
                layers.append(item.layer)
        return layers

    def objects_on_layer(self, layer: Layer, traces_only: bool = False) -> list:
        items = self.traces if traces_only else self.pads + self.traces
        return [item for item in items if item.layer == layer]

    def synchronize_coordinate_units(self, units: PcbUnits):
        for item in self.pads + self.traces:
            if item.coordinate_units != units:
                item.set_coordinate_units(units)
        for g in self.graphics:
            g.synchronize_coordinate_units(units)
        self.coordinate_units = units

    def synchronize_units(self, units: PcbUnits):
        for item in self.pads + self.traces:
            if item.units != units:
                item.set_units(units)
        for g in self.graphics:
            g.synchronize_units(units)
