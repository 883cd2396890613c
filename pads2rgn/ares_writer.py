"""ARES7 region file (.RGN) writer.

Turns a PcbDesign into the text of a region file:

    ARES REGION FILE
    *HEADER        - version and coordinate units
    *OBJECTS       - pads, then silkscreen lines
    *VIAS          - always empty, vias are not modeled
    *LAYER <name>  - one block per copper layer that carries traces

Dimensions are written in thou, coordinates in 10 nm. Records are separated
by CR-LF and numbers never depend on the host locale.
"""

import logging
from typing import Optional

from .config import ConversionContext
from .diagnostics import Category, ConfigurationError
from .pcb_model import (
    ExtendedLayer, GraphicsLayer, PadShape, PcbDesign, PcbLayer,
)
from .units import PcbUnits
from .utils import fmt, fmt_int

log = logging.getLogger(__name__)

NEWLINE = "\r\n"

SIGNATURE = "ARES REGION FILE" + NEWLINE + NEWLINE
HEADER = NEWLINE.join(["*HEADER", "VERSION 710 600", "UNITS {units}", "", ""])
OBJECTS = NEWLINE.join(["*OBJECTS", "{contents}", "*END_OBJECTS", "", ""])
VIAS = NEWLINE.join(["*VIAS", "{contents}", "*END_VIAS", "", ""])
LAYER = NEWLINE.join(["*LAYER {name}", "{contents}", "*END_LAYER", "", ""])

# Style is e.g. C-60-40 for circular or 15X17 for rectangular pads
PAD_RECORD = 'PAD "{number}" "{style}" {layer} {x} {y} {flags}'
GRAPHICS_LINE_RECORD = "GRAPHIC {layer} LINE 4 {x1} {y1} {x2} {y2}"
# Segment count is the number of XY pairs
TRACE_RECORD = '"T{thickness}" S {segments} {xy}'

DIMENSION_UNITS = PcbUnits.THOU
COORDINATE_UNITS = PcbUnits.TEN_NANOMETERS


def pad_style_template(shape: PadShape) -> Optional[str]:
    """{0} = outer dimension (width), {1} = drill or inner dimension (height)."""
    return {
        PadShape.CIRCULAR_TH: "C-{0}-{1}",
        PadShape.RECTANGULAR_SMT: "{0}X{1}",
        PadShape.RECTANGULAR_TH: "S-{0}-{1}",
        PadShape.CIRCULAR_SMT: "CSMT-{0}",
    }.get(shape)


def layer_code(layer) -> Optional[str]:
    if isinstance(layer, ExtendedLayer):
        return None
    return {
        PcbLayer.DRILL: "DRL",
        PcbLayer.BOTTOM: "BOT",
        PcbLayer.TOP: "TOP",
        PcbLayer.INTERNAL_TOP: "I1",
        PcbLayer.INTERNAL_BOTTOM: "I2",
        PcbLayer.ALL: "ALL",
    }.get(layer)


def units_code(units: PcbUnits) -> Optional[str]:
    return {
        PcbUnits.THOU: "1th",
        PcbUnits.MILLIMETER: "1mm",
        PcbUnits.TEN_NANOMETERS: "10nm",
        PcbUnits.INCH: "1in",
    }.get(units)


def graphics_layer_code(layer: GraphicsLayer) -> Optional[str]:
    return {
        GraphicsLayer.BOTTOM_SILK: "BS",
        GraphicsLayer.TOP_SILK: "TS",
    }.get(layer)


def _layer_name(layer) -> str:
    if isinstance(layer, ExtendedLayer):
        return f"#{layer.index}"
    return layer.name


def write_region(design: PcbDesign, context: Optional[ConversionContext] = None) -> str:
    """Render a PcbDesign as region file text.

    The design is converted in place to thou dimensions and 10 nm coordinates.
    """
    return AresWriter(context).write(design)


class AresWriter:
    def __init__(self, context: Optional[ConversionContext] = None):
        self.context = context or ConversionContext()
        self.options = self.context.options
        self.diagnostics = self.context.diagnostics

    def write(self, design: PcbDesign) -> str:
        design.synchronize_units(DIMENSION_UNITS)
        design.synchronize_coordinate_units(COORDINATE_UNITS)

        units = units_code(design.coordinate_units)
        if units is None:
            raise ConfigurationError(f"Region files cannot use {design.coordinate_units.name} units")

        out = [SIGNATURE, HEADER.format(units=units)]

        records = self._pad_records(design) + self._graphics_records(design)
        out.append(OBJECTS.format(contents=NEWLINE.join(records)))
        out.append(VIAS.format(contents=""))

        layer_count = 0
        for layer in design.get_layers(traces_only=True):
            name = layer_code(layer)
            if name is None:
                self.diagnostics.warn(
                    Category.UNSUPPORTED_LAYER,
                    f"Traces on layer {_layer_name(layer)} ignored, layer is not supported")
                continue
            traces = design.objects_on_layer(layer, traces_only=True)
            contents = NEWLINE.join(self._trace_record(t) for t in traces)
            out.append(LAYER.format(name=name, contents=contents))
            layer_count += 1

        log.info("Wrote %d object records, %d trace layers", len(records), layer_count)
        return "".join(out)

    # ── Objects ───────────────────────────────────────────────────────

    def _pad_records(self, design: PcbDesign) -> list:
        records = []
        for pad in design.pads:
            layer = layer_code(pad.layer)
            if layer is None:
                self.diagnostics.warn(
                    Category.UNSUPPORTED_LAYER,
                    f"Pad {pad.number} ignored, layer {_layer_name(pad.layer)} is not supported")
                continue
            template = pad_style_template(pad.style.shape)
            if template is None:
                self.diagnostics.warn(
                    Category.UNSUPPORTED_SHAPE,
                    f"Pad {pad.number} ignored, shape {pad.style.shape.name} is not supported")
                continue

            style = pad.style
            outer = style.dim1
            if pad.layer == PcbLayer.DRILL:
                # ARES7 does not accept a hole as large as its pad
                outer += self.options.drill_ring_allowance
            inner = style.drill if style.drill > 0 else style.dim2

            records.append(PAD_RECORD.format(
                number=pad.number,
                style=template.format(fmt_int(outer), fmt_int(inner)),
                layer=layer,
                x=fmt(pad.x),
                y=fmt(pad.y),
                flags=pad.flags if pad.flags is not None else self.options.default_pad_flags,
            ))
        return records

    def _graphics_records(self, design: PcbDesign) -> list:
        records = []
        for graphics in design.graphics:
            layer = graphics_layer_code(graphics.layer)
            for line in graphics.lines:
                if layer is None:
                    self.diagnostics.warn(
                        Category.UNSUPPORTED_LAYER,
                        f"Graphics layer {graphics.layer.name} is not supported")
                    continue
                records.append(GRAPHICS_LINE_RECORD.format(
                    layer=layer,
                    x1=fmt(line.start.x),
                    y1=fmt(line.start.y),
                    x2=fmt(line.end.x),
                    y2=fmt(line.end.y),
                ))
        return records

    # ── Layers ────────────────────────────────────────────────────────

    def _trace_record(self, trace) -> str:
        xy = " ".join(f"{fmt(p.x)} {fmt(p.y)}" for p in trace.points)
        return TRACE_RECORD.format(
            thickness=fmt_int(trace.thickness),
            segments=trace.segments,
            xy=xy,
        )
