"""PADS ASCII file format parser.

Reads the text of a PADS ASCII export and produces a PcbDesign intermediate
representation. Only the *PARTDECAL* section is decoded; every other section
is located and ignored.

PADS ASCII structure reference:
  !PADS-POWERPCB-V9.0-MILS!     - File header; the token before the closing
                                  '!' declares the file units
  *PARTDECAL*                   - Section marker, followed by the decal:
    <name> <units> <x> <y> <pieces> <terminals> <stacks> <text> <labels>
    CLOSED|OPEN|COPPER <n> <width> <layer> <pin>   - Piece, then n "x y" lines
    T<x> <y> <nx> <ny> <pin>                       - Terminal (placed pin)
    PAD <pin> <n>                                  - Padstack, then n stacklines
    <layer> <size> <shape> [shape-dependent args]  - Stackline
"""

import logging
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Optional

from .config import ConversionContext
from .diagnostics import (
    Category, ConversionError, PadsFormatError, PadsSyntaxError,
    UnsupportedShapeError,
)
from .pcb_model import (
    ExtendedLayer, Graphics, GraphicsLayer, LineType, Pad, PadShape,
    PadStyle, PcbDesign, PcbLayer, Point, SilkLine, Trace,
)
from .units import PcbUnits
from .utils import field as get_field, parse_float, parse_int, split_fields, try_float

log = logging.getLogger(__name__)

FILE_HEADER_DESIGNATOR = "!"
FILE_HEADER_SEPARATOR = "-"

HEADER_UNITS = {
    "MILS": PcbUnits.THOU,
    "METRIC": PcbUnits.MILLIMETER,
    "BASIC": PcbUnits.TWO_THIRDS_NANOMETER,
    "INCHES": PcbUnits.INCH,
}

DECAL_UNITS = {
    "I": PcbUnits.THOU,
    "M": PcbUnits.MILLIMETER,
}


class Section(Enum):
    CLUSTER = "*CLUSTER*"
    CONN = "*CONN*"
    END = "*END*"
    GET = "*GET*"
    JUMPER = "*JUMPER*"
    LINES = "*LINES*"
    MISC = "*MISC*"
    NET = "*NET*"
    PART = "*PART*"
    PARTDECAL = "*PARTDECAL*"
    PARTTYPE = "*PARTTYPE*"
    PCB = "*PCB*"
    POUR = "*POUR*"
    REMARK = "*REMARK*"
    REUSE = "*REUSE*"
    ROUTE = "*ROUTE*"
    SIGNAL = "*SIGNAL*"
    STANDARD = "*STANDARD*"
    TESTPOINT = "*TESTPOINT*"
    TEXT = "*TEXT*"
    VIA = "*VIA*"


# ── Decal records ─────────────────────────────────────────────────────


class PieceType(Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"
    COPPER = "COPPER"


# Order in which piece markers are scanned
PIECE_SCAN_ORDER = (PieceType.CLOSED, PieceType.OPEN, PieceType.COPPER)

# Copper piece layer 0 means every layer
LAYER_ALL_NUMBER = 0

# Copper piece layer codes follow the PcbLayer numbering, 0 (ALL) to 4 (TOP)
COPPER_LAYERS = {layer.value: layer for layer in PcbLayer if layer.value >= LAYER_ALL_NUMBER}

GRAPHICS_LAYERS = {
    27: GraphicsLayer.BOTTOM_SILK,
    26: GraphicsLayer.TOP_SILK,
    20: GraphicsLayer.OTHER,
}

# Source line style codes; only the first three have a counterpart
PADS_LINE_TYPE_NAMES = {
    0: "SOLID",
    1: "DASHED",
    2: "DOTTED",
    3: "DASH_DOTTED",
    4: "DASH_DOUBLE_DOTTED",
}

LINE_TYPES = {
    0: LineType.SOLID,
    1: LineType.DASHED,
    2: LineType.DOTTED,
}


@dataclass
class Piece:
    piece_type: PieceType = PieceType.OPEN
    layer: int = 0
    width: float = 0.0
    line_type: int = 0
    pin_count: int = -1
    points: list = field(default_factory=list)  # list of Point


@dataclass
class Terminal:
    designator: str = ""
    x: float = 0.0
    y: float = 0.0
    # Pin number label position, not used downstream
    number_x: float = 0.0
    number_y: float = 0.0
    # 1-based discovery order, used as a fallback padstack binding key
    index: int = -1


class StackShape(Enum):
    ROUND = "R"
    SQUARE = "S"
    ANNULAR = "A"
    ODD = "O"
    OVAL_FINGER = "OF"
    RECTANGULAR_FINGER = "RF"


class SpecialLayer:
    TOP = -2
    INNER = -1
    BOTTOM = 0


# Padstack designator that applies to every terminal
ALL_TERMINALS_DESIGNATOR = "0"
PADSTACK_PREFIX = "PAD "
TERMINAL_PREFIX = "\nT"


@dataclass(frozen=True)
class StackArgs:
    """Shape-dependent stackline arguments.

    Each subclass lists the field positions its shape defines in POSITIONS.
    An argument is None when the stackline is too short or the field is not
    a number (e.g. the plating flag that may follow the drill size).
    """

    POSITIONS = {}

    @classmethod
    def from_fields(cls, values: list) -> "StackArgs":
        kwargs = {}
        for name, index in cls.POSITIONS.items():
            kwargs[name] = try_float(values[index]) if index < len(values) else None
        return cls(**kwargs)

    @property
    def present(self) -> int:
        return sum(1 for f in fields(self) if getattr(self, f.name) is not None)

    @property
    def drill_size(self) -> Optional[float]:
        return getattr(self, "drill", None)


@dataclass(frozen=True)
class RoundArgs(StackArgs):
    POSITIONS = {"drill": 3}
    drill: Optional[float] = None


@dataclass(frozen=True)
class SquareArgs(StackArgs):
    POSITIONS = {"corner_radius": 3, "drill": 4}
    corner_radius: Optional[float] = None
    drill: Optional[float] = None


@dataclass(frozen=True)
class AnnularArgs(StackArgs):
    POSITIONS = {"internal_diameter": 3, "drill": 4}
    internal_diameter: Optional[float] = None
    drill: Optional[float] = None


@dataclass(frozen=True)
class OddArgs(StackArgs):
    POSITIONS = {}


@dataclass(frozen=True)
class OvalFingerArgs(StackArgs):
    POSITIONS = {"rotation": 3, "length": 4, "offset": 5}
    rotation: Optional[float] = None
    length: Optional[float] = None
    offset: Optional[float] = None


@dataclass(frozen=True)
class RectangularFingerArgs(StackArgs):
    POSITIONS = {"rotation": 3, "length": 4, "offset": 5,
                 "corner_radius": 6, "drill": 7}
    rotation: Optional[float] = None
    length: Optional[float] = None
    offset: Optional[float] = None
    corner_radius: Optional[float] = None
    drill: Optional[float] = None


SHAPE_ARGS = {
    StackShape.ROUND: RoundArgs,
    StackShape.SQUARE: SquareArgs,
    StackShape.ANNULAR: AnnularArgs,
    StackShape.ODD: OddArgs,
    StackShape.OVAL_FINGER: OvalFingerArgs,
    StackShape.RECTANGULAR_FINGER: RectangularFingerArgs,
}


@dataclass
class StackLine:
    layer: int = 0
    size: float = 0.0
    shape: StackShape = StackShape.ROUND
    args: StackArgs = field(default_factory=RoundArgs)

    @property
    def useful(self) -> bool:
        """0x0 lines only fill the mandatory three-layer minimum."""
        return self.size != 0 or self.args.present > 0


@dataclass
class PadStack:
    designator: str = ""
    lines: list = field(default_factory=list)  # list of StackLine


@dataclass
class Partdecal:
    name: str = "N/A"
    # Declared unit letter only; decal numbers are in file header units
    units: PcbUnits = PcbUnits.THOU
    # Declared counts, used as upper bounds while scanning
    piece_count: int = 0
    terminal_count: int = 0
    stack_count: int = 0
    pieces: list = field(default_factory=list)  # list of Piece
    terminals: list = field(default_factory=list)  # list of Terminal
    padstacks: list = field(default_factory=list)  # list of PadStack


def _read_lines(text: str, pos: int):
    """Yield the lines of text starting at pos, without line endings."""
    n = len(text)
    while pos < n:
        end = text.find("\n", pos)
        if end < 0:
            yield text[pos:].rstrip("\r")
            return
        yield text[pos:end].rstrip("\r")
        pos = end + 1


def parse_pads(text: str, context: Optional[ConversionContext] = None) -> PcbDesign:
    """Parse PADS ASCII text and return a PcbDesign.

    Args:
        text: Full contents of the PADS ASCII file
        context: Options and diagnostics collector for this conversion

    Returns:
        PcbDesign whose coordinates are in the file header units

    Raises:
        PadsFormatError: the file header cannot be read
    """
    parser = PadsParser(context)
    return parser.parse(text)


class PadsParser:
    def __init__(self, context: Optional[ConversionContext] = None):
        self.context = context or ConversionContext()
        self.options = self.context.options
        self.diagnostics = self.context.diagnostics
        self.coordinate_units = PcbUnits.THOU
        # Section -> offset of the first line after its marker line
        self.sections = {}
        # Section -> offset of the marker itself
        self.markers = {}

    def parse(self, text: str) -> PcbDesign:
        self.options.validate()
        body_start = self._parse_file_header(text)
        self._index_sections(text, body_start)

        design = PcbDesign()
        decal = self._parse_partdecal_section(text)
        if decal is not None:
            self._process_pieces(design, decal)
            self._process_pads(design, decal)

        design.synchronize_coordinate_units(self.coordinate_units)
        log.info("Design: %d pads, %d traces, %d graphics",
                 len(design.pads), len(design.traces), len(design.graphics))
        return design

    # ── File header ───────────────────────────────────────────────────

    def _parse_file_header(self, text: str) -> int:
        """Read the unit token from the file header and return where the body starts."""
        end = text.find(FILE_HEADER_DESIGNATOR, 1)
        if end < 0:
            raise PadsFormatError("File header not found")
        start = text.rfind(FILE_HEADER_SEPARATOR, 0, end) + 1
        token = text[start:end]
        units = HEADER_UNITS.get(token)
        if units is None:
            raise PadsFormatError(f"Unrecognized units {token!r} in file header")
        self.coordinate_units = units
        log.info("File units: %s", token)

        nl = text.find("\n", end)
        return len(text) if nl < 0 else nl + 1

    # ── Section index ─────────────────────────────────────────────────

    def _index_sections(self, text: str, start: int):
        n = len(text)
        for section in Section:
            pos = text.find(section.value, start)
            if pos < 0:
                continue
            # Remarks are comments and may sit inside any section
            if section != Section.REMARK:
                self.markers[section] = pos
            nl = text.find("\n", pos)
            pos = n if nl < 0 else nl + 1
            # One blank line after the marker, and the stray CR some exporters leave behind
            if text[pos:pos + 1] == "\n":
                pos += 1
            if text[pos:pos + 1] == "\r":
                pos = min(pos + 2, n)
            self.sections[section] = pos

        for section in self.sections:
            if section not in (Section.PARTDECAL, Section.END, Section.REMARK):
                log.debug("Section %s ignored", section.value)

    def _section_text(self, text: str, section: Section) -> Optional[str]:
        start = self.sections.get(section)
        if start is None:
            return None
        # Stop at the next marker so its line never leaks into this section
        end = min((m for m in self.markers.values() if m >= start), default=len(text))
        return text[start:end]

    # ── *PARTDECAL* ───────────────────────────────────────────────────

    def _parse_partdecal_section(self, text: str) -> Optional[Partdecal]:
        section = self._section_text(text, Section.PARTDECAL)
        if section is None:
            log.warning("No %s section, nothing to convert", Section.PARTDECAL.value)
            return None
        if not section.strip():
            log.warning("Empty %s section, nothing to convert", Section.PARTDECAL.value)
            return None

        try:
            decal, header_end = self._parse_decal_header(section)
        except PadsSyntaxError as e:
            self.diagnostics.add_exception(e, "Partdecal ignored")
            return None

        for piece_type in PIECE_SCAN_ORDER:
            marker = piece_type.value
            pos = header_end
            for _ in range(decal.piece_count):
                pos = section.find(marker, pos)
                if pos < 0:
                    break
                try:
                    decal.pieces.append(self._parse_piece(section, pos))
                except ConversionError as e:
                    self.diagnostics.add_exception(e, f"{marker} piece ignored")
                pos += len(marker) + 1

        pos = header_end
        for _ in range(decal.stack_count):
            pos = section.find(PADSTACK_PREFIX, pos)
            if pos < 0:
                break
            try:
                decal.padstacks.append(self._parse_padstack(section, pos))
            except ConversionError as e:
                self.diagnostics.add_exception(e, "Padstack ignored")
            pos += len(PADSTACK_PREFIX) + 1

        # Start on the header's own line break so a terminal right below it is found
        pos = header_end - 1
        for i in range(decal.terminal_count):
            pos = section.find(TERMINAL_PREFIX, pos)
            if pos < 0:
                break
            try:
                decal.terminals.append(
                    self._parse_terminal(section, pos + len(TERMINAL_PREFIX), i + 1))
            except ConversionError as e:
                self.diagnostics.add_exception(e, f"Terminal #{i + 1} ignored")
            pos += len(TERMINAL_PREFIX)

        log.info("Partdecal %s: %d pieces, %d padstacks, %d terminals",
                 decal.name, len(decal.pieces), len(decal.padstacks), len(decal.terminals))
        return decal

    def _parse_decal_header(self, section: str):
        """Parse the decal header line; returns (Partdecal, offset after the header)."""
        pos = 0
        while True:
            nl = section.find("\n", pos)
            line = section[pos:] if nl < 0 else section[pos:nl]
            if line.strip() and not line.lstrip().startswith(Section.REMARK.value):
                break
            if nl < 0:
                raise PadsSyntaxError("Partdecal header not found")
            pos = nl + 1

        header_end = len(section) if nl < 0 else nl + 1
        parts = split_fields(line)
        try:
            name = get_field(parts, 0, "decal name")
            units_token = get_field(parts, 1, "decal units")
            piece_count = parse_int(get_field(parts, 4, "piece count"), "piece count")
            terminal_count = parse_int(get_field(parts, 5, "terminal count"), "terminal count")
            stack_count = parse_int(get_field(parts, 6, "padstack count"), "padstack count")
        except PadsSyntaxError as e:
            raise PadsSyntaxError(f"Bad partdecal header: {e}") from e

        units = DECAL_UNITS.get(units_token)
        if units is None:
            raise PadsSyntaxError(f"Unrecognized partdecal units {units_token!r}")

        decal = Partdecal(
            name=name,
            units=units,
            piece_count=piece_count,
            terminal_count=terminal_count,
            stack_count=stack_count,
        )
        return decal, header_end

    def _parse_piece(self, section: str, pos: int) -> Piece:
        lines = _read_lines(section, pos)
        parts = split_fields(next(lines, ""))

        type_token = get_field(parts, 0, "piece type")
        try:
            piece_type = PieceType(type_token)
        except ValueError:
            raise PadsSyntaxError(
                f"Piece type {type_token!r} is not implemented", Category.UNIMPLEMENTED_PIECE
            ) from None

        count = parse_int(get_field(parts, 1, "coordinate count"), "coordinate count")
        piece = Piece(
            piece_type=piece_type,
            width=parse_float(get_field(parts, 2, "piece width"), "piece width"),
        )
        if self.options.piece_header_compatibility:
            # LINES layout: type count width linetype layer
            piece.line_type = parse_int(get_field(parts, 3, "line type"), "line type")
            piece.layer = parse_int(get_field(parts, 4, "piece layer"), "piece layer")
        else:
            piece.layer = parse_int(get_field(parts, 3, "piece layer"), "piece layer")
            if len(parts) > 4:
                piece.pin_count = parse_int(parts[4], "piece pin number")

        for i in range(count):
            line = next(lines, None)
            if line is None:
                raise PadsSyntaxError(
                    f"{type_token} piece ends after {i} of {count} coordinates")
            xy = split_fields(line)
            piece.points.append(Point(
                parse_float(get_field(xy, 0, "X coordinate"), "X coordinate"),
                parse_float(get_field(xy, 1, "Y coordinate"), "Y coordinate"),
            ))
        return piece

    def _parse_terminal(self, section: str, pos: int, index: int) -> Terminal:
        line = next(_read_lines(section, pos), "")
        parts = split_fields(line)
        return Terminal(
            x=parse_float(get_field(parts, 0, "terminal X"), "terminal X"),
            y=parse_float(get_field(parts, 1, "terminal Y"), "terminal Y"),
            number_x=parse_float(get_field(parts, 2, "number X"), "number X"),
            number_y=parse_float(get_field(parts, 3, "number Y"), "number Y"),
            designator=get_field(parts, 4, "pin designator"),
            index=index,
        )

    def _parse_padstack(self, section: str, pos: int) -> PadStack:
        lines = _read_lines(section, pos)
        parts = split_fields(next(lines, ""))
        stack = PadStack(designator=get_field(parts, 1, "padstack pin"))
        count = parse_int(get_field(parts, 2, "stackline count"), "stackline count")
        for i in range(count):
            line = next(lines, None)
            if line is None:
                raise PadsSyntaxError(
                    f"Padstack {stack.designator} ends after {i} of {count} stacklines")
            stack.lines.append(self._parse_stackline(line))
        return stack

    def _parse_stackline(self, line: str) -> StackLine:
        parts = split_fields(line)
        shape_code = get_field(parts, 2, "pad shape")
        try:
            shape = StackShape(shape_code)
        except ValueError:
            raise PadsSyntaxError(
                f"Unknown pad shape {shape_code!r}", Category.UNSUPPORTED_SHAPE
            ) from None
        return StackLine(
            layer=parse_int(get_field(parts, 0, "stackline layer"), "stackline layer"),
            size=parse_float(get_field(parts, 1, "pad size"), "pad size"),
            shape=shape,
            args=SHAPE_ARGS[shape].from_fields(parts),
        )

    # ── Pieces -> graphics and traces ─────────────────────────────────

    def _process_pieces(self, design: PcbDesign, decal: Partdecal):
        # The decal unit letter is informational, numbers are in file header units
        units = self.coordinate_units
        for piece in decal.pieces:
            if piece.piece_type == PieceType.COPPER:
                design.traces.append(Trace(
                    layer=self._copper_layer(piece.layer),
                    thickness=piece.width,
                    units=units,
                    coordinate_units=units,
                    points=list(piece.points),
                ))
            else:
                design.graphics.append(self._polyline(piece, units))

    def _copper_layer(self, code: int):
        layer = COPPER_LAYERS.get(code)
        if layer is None:
            layer = ExtendedLayer(code)
            self.diagnostics.warn(Category.UNSUPPORTED_LAYER,
                                  f"Copper layer #{code} has no standard counterpart")
        return layer

    def _polyline(self, piece: Piece, units: PcbUnits) -> Graphics:
        layer = GRAPHICS_LAYERS.get(piece.layer)
        if layer is None:
            layer = GraphicsLayer.TOP_SILK
            self.diagnostics.warn(Category.UNSUPPORTED_LAYER,
                                  f"Default graphics layer used instead of #{piece.layer}")
        line_type = LINE_TYPES.get(piece.line_type)
        if line_type is None:
            line_type = LineType.SOLID
            name = PADS_LINE_TYPE_NAMES.get(piece.line_type, str(piece.line_type))
            self.diagnostics.warn(Category.UNSUPPORTED_LINE_TYPE,
                                  f"Default line type used instead of {name}")

        graphics = Graphics(units=units, coordinate_units=units, layer=layer)
        for start, end in zip(piece.points, piece.points[1:]):
            graphics.lines.append(SilkLine(
                start=start,
                end=end,
                units=units,
                coordinate_units=units,
                thickness=piece.width,
                line_type=line_type,
            ))
        return graphics

    # ── Terminals + padstacks -> pads ─────────────────────────────────

    def _find_padstack(self, decal: Partdecal, terminal: Terminal,
                       default_stack: Optional[PadStack]) -> Optional[PadStack]:
        """Bind by designator and by index (order set by options), then the wildcard stack."""
        keys = [terminal.designator, str(terminal.index)]
        if self.options.prioritize_padstack_binding_by_index:
            keys.reverse()
        for key in keys:
            for stack in decal.padstacks:
                if stack.designator == key:
                    return stack
        return default_stack

    def _process_pads(self, design: PcbDesign, decal: Partdecal):
        units = self.coordinate_units
        default_stack = next(
            (s for s in decal.padstacks if s.designator == ALL_TERMINALS_DESIGNATOR), None)
        pattern = set(self.options.all_layer_pattern)

        for terminal in decal.terminals:
            stack = self._find_padstack(decal, terminal, default_stack)
            if stack is None:
                self.diagnostics.warn(
                    Category.MISSING_PADSTACK,
                    f"Can't find a suitable padstack for the terminal #{terminal.designator}")
                continue

            # Drill-only hole: the drill swallows the whole pad
            drill_line = next(
                (l for l in stack.lines
                 if l.args.drill_size is not None and l.args.drill_size >= l.size), None)
            if drill_line is not None:
                d = drill_line.args.drill_size
                self._add_pad(design, terminal, units, PcbLayer.DRILL,
                              PadStyle(PadShape.CIRCULAR_TH, units, d, 0.0, d))
                continue

            useful = [l for l in stack.lines if l.useful]

            # Layer ALL: PADS always lists at least three layers
            if len(useful) == 3 and len({l.layer for l in useful} | pattern) == 3:
                # Drill and other extras usually sit on one layer only; first wins ties
                line = max(useful, key=lambda l: l.args.present)
                try:
                    style = self._pad_style(line, units)
                except ConversionError as e:
                    self.diagnostics.add_exception(e, f"Terminal #{terminal.designator}")
                    continue
                self._add_pad(design, terminal, units, PcbLayer.ALL, style)
                continue

            for line in useful:
                try:
                    style = self._pad_style(line, units)
                except ConversionError as e:
                    self.diagnostics.add_exception(e, f"Terminal #{terminal.designator}")
                    continue
                layer = self._pad_layer(line.layer)
                self._add_pad(design, terminal, units, layer, style)
                # Inner stacklines describe both internal faces
                if layer == PcbLayer.INTERNAL_BOTTOM:
                    self._add_pad(design, terminal, units, PcbLayer.INTERNAL_TOP, replace(style))

    def _add_pad(self, design: PcbDesign, terminal: Terminal, units: PcbUnits, layer, style: PadStyle):
        design.pads.append(Pad(
            number=terminal.designator,
            coordinate_units=units,
            x=terminal.x,
            y=terminal.y,
            layer=layer,
            style=style,
        ))

    def _pad_style(self, line: StackLine, units: PcbUnits) -> PadStyle:
        args = line.args
        drill = args.drill_size
        drilled = drill is not None

        if line.shape == StackShape.ROUND:
            # Round + drill is a plated hole, not an annular pad
            shape = PadShape.CIRCULAR_TH if drilled else PadShape.CIRCULAR_SMT
            return PadStyle(shape, units, line.size, 0.0, drill or 0.0)

        if line.shape == StackShape.SQUARE:
            shape = PadShape.RECTANGULAR_TH if drilled else PadShape.RECTANGULAR_SMT
            return PadStyle(shape, units, line.size, line.size, drill or 0.0)

        if line.shape == StackShape.ANNULAR:
            if args.internal_diameter is None:
                raise PadsSyntaxError("Annular pad without an internal diameter")
            shape = PadShape.CIRCULAR_TH if drilled else PadShape.CIRCULAR_SMT
            return PadStyle(shape, units, line.size, args.internal_diameter, drill or 0.0)

        if line.shape == StackShape.RECTANGULAR_FINGER:
            if args.length is None:
                raise PadsSyntaxError("Rectangular finger pad without a length")
            self.diagnostics.warn(
                Category.LOSSY_APPROXIMATION,
                "Only Length argument is supported for RectangularFinger pad style!")
            return PadStyle(PadShape.RECTANGULAR_SMT, units, line.size, args.length)

        raise UnsupportedShapeError(f"Pad shape {line.shape.name} ignored.")

    def _pad_layer(self, code: int):
        if code == SpecialLayer.TOP:
            return PcbLayer.TOP
        if code == SpecialLayer.INNER:
            return PcbLayer.INTERNAL_BOTTOM
        if code == SpecialLayer.BOTTOM:
            return PcbLayer.BOTTOM
        self.diagnostics.warn(
            Category.UNSUPPORTED_LAYER,
            f"Padstack non-special layer recognition is only partially implemented! (layer {code})")
        return ExtendedLayer(code)
