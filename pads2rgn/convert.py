#!/usr/bin/env python3
"""PADS ASCII to ARES7 region file converter.

Reads a PADS ASCII export, decodes its *PARTDECAL* section and writes the
footprint as an ARES7 region file (.RGN).

Usage:
    python3 -m pads2rgn.convert input.asc [output.rgn] [-v] [--compat]
        [--index-binding] [--layers -2,-1,0] [--config options.json] [--strict]
"""

import argparse
import logging
import sys
from dataclasses import dataclass, field, replace
from enum import Enum, auto
from pathlib import Path
from typing import Optional

from .ares_writer import write_region
from .config import ConversionContext, ConversionOptions
from .diagnostics import (
    Category, ConfigurationError, ConversionError, Diagnostics, PadsFormatError,
    Severity,
)
from .pads_parser import parse_pads

log = logging.getLogger(__name__)


class EdaFormat(Enum):
    PADS_ASCII = auto()
    ARES7_REGION = auto()


DECODERS = {
    EdaFormat.PADS_ASCII: parse_pads,
}

ENCODERS = {
    EdaFormat.ARES7_REGION: write_region,
}


@dataclass
class ConversionResult:
    # None when the source could not be turned into a design
    output: Optional[str] = None
    diagnostics: Diagnostics = field(default_factory=Diagnostics)

    @property
    def ok(self) -> bool:
        return self.output is not None


def convert(text: str,
            source: EdaFormat = EdaFormat.PADS_ASCII,
            destination: EdaFormat = EdaFormat.ARES7_REGION,
            options: Optional[ConversionOptions] = None) -> ConversionResult:
    """Convert one document between formats.

    Recoverable problems end up in result.diagnostics; a source that cannot be
    interpreted at all gives result.output = None and a fatal diagnostic.

    Raises:
        ConfigurationError: unsupported format pair or unusable options
    """
    decode = DECODERS.get(source)
    if decode is None:
        raise ConfigurationError(f"Unsupported source EDA tool/format: {source.name}")
    encode = ENCODERS.get(destination)
    if encode is None:
        raise ConfigurationError(f"Unsupported target EDA tool/format: {destination.name}")

    context = ConversionContext(options=(options or ConversionOptions()).validate())
    result = ConversionResult(diagnostics=context.diagnostics)

    try:
        design = decode(text, context)
    except PadsFormatError as e:
        context.diagnostics.add(Category.FATAL, f"PCB design wasn't parsed properly: {e}",
                                Severity.FATAL)
        return result

    result.output = encode(design, context)
    return result


def _parse_layers(value: str) -> tuple:
    try:
        return tuple(int(x) for x in value.split(",") if x.strip())
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected comma-separated layer numbers, got {value!r}")


def _build_options(args) -> ConversionOptions:
    options = ConversionOptions()
    if args.config:
        options = ConversionOptions.from_json_file(args.config)
    overrides = {}
    if args.compat:
        overrides["piece_header_compatibility"] = True
    if args.index_binding:
        overrides["prioritize_padstack_binding_by_index"] = True
    if args.layers is not None:
        overrides["four_layer_model"] = False
        overrides["custom_layer_model"] = args.layers
    if args.all_override:
        overrides["layer_model_override_for_all"] = True
    return replace(options, **overrides)


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Convert a PADS ASCII part decal into an ARES7 region file"
    )
    parser.add_argument("input", help="PADS ASCII file (.asc)")
    parser.add_argument("output", nargs="?", default=None,
                        help="Region file to write (default: stdout)")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Enable verbose logging")
    parser.add_argument("--compat", action="store_true",
                        help="Piece headers use the LINES layout (SamacSys exports)")
    parser.add_argument("--index-binding", action="store_true",
                        help="Bind padstacks by terminal index before pin designator")
    parser.add_argument("--layers", type=_parse_layers, default=None,
                        help="Custom layer model recognized as layer ALL, e.g. -2,-1,0,1")
    parser.add_argument("--all-override", action="store_true",
                        help="Keep recognizing -2,-1,0 as layer ALL with --layers")
    parser.add_argument("--config", type=Path, default=None,
                        help="JSON file with conversion options")
    parser.add_argument("--strict", action="store_true",
                        help="Do not write output when there are warnings")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    input_path = Path(args.input)
    if not input_path.exists():
        print(f"Error: {input_path} not found", file=sys.stderr)
        sys.exit(1)

    try:
        options = _build_options(args)
        text = input_path.read_text(encoding="utf-8", errors="replace")
        result = convert(text, options=options)
    except ConversionError as e:
        print(f"Error converting {input_path}: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc(file=sys.stderr)
        sys.exit(1)

    if not result.ok:
        print(f"Error: {result.diagnostics.report()}", file=sys.stderr, end="")
        sys.exit(1)

    if result.diagnostics:
        print("Warnings:", file=sys.stderr)
        print(result.diagnostics.report(), file=sys.stderr, end="")
        if args.strict:
            sys.exit(2)

    if args.output:
        # newline="" keeps the CR-LF record separators as written
        with open(args.output, "w", encoding="utf-8", newline="") as f:
            f.write(result.output)
        log.info("Wrote %s", args.output)
    else:
        sys.stdout.buffer.write(result.output.encode("utf-8"))
        sys.stdout.flush()


if __name__ == "__main__":
    main()
