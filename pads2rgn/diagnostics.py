"""Conversion diagnostics and the exception hierarchy.

Recoverable faults (one pad, piece, padstack or line that cannot be resolved)
are collected into a Diagnostics instance owned by the conversion, so that a
single bad entity never aborts the whole document. Fatal faults are raised as
PadsFormatError and stop the conversion.
"""

import logging
from dataclasses import dataclass
from enum import Enum

log = logging.getLogger(__name__)


class Category(Enum):
    UNSUPPORTED_SHAPE = "unsupported shape"
    UNSUPPORTED_LAYER = "unsupported layer"
    UNSUPPORTED_LINE_TYPE = "unsupported line type"
    MISSING_PADSTACK = "missing padstack"
    UNIMPLEMENTED_PIECE = "unimplemented piece type"
    MALFORMED_FIELD = "malformed field"
    LOSSY_APPROXIMATION = "lossy approximation"
    FATAL = "fatal"


class Severity(Enum):
    WARNING = "warning"
    FATAL = "fatal"


class ConversionError(Exception):
    """Base class for all conversion errors."""

    category = Category.FATAL

    def __init__(self, message: str = "", category: Category = None):
        super().__init__(message)
        if category is not None:
            self.category = category


class ConfigurationError(ConversionError):
    """Invalid conversion options or an unsupported format selection."""


class PadsFormatError(ConversionError):
    """The source document cannot be interpreted at all."""


class PadsSyntaxError(ConversionError):
    """A single source record could not be parsed."""

    category = Category.MALFORMED_FIELD


class UnsupportedShapeError(ConversionError):
    category = Category.UNSUPPORTED_SHAPE


@dataclass(frozen=True)
class Diagnostic:
    category: Category
    message: str
    severity: Severity = Severity.WARNING

    def __str__(self):
        return f"{self.category.value}: {self.message}"


class Diagnostics:
    """Ordered, append-only collection of diagnostics for one conversion."""

    def __init__(self):
        self._items = []

    def add(self, category: Category, message: str,
            severity: Severity = Severity.WARNING) -> Diagnostic:
        diag = Diagnostic(category, message, severity)
        self._items.append(diag)
        log.debug("%s: %s", severity.value, diag)
        return diag

    def warn(self, category: Category, message: str) -> Diagnostic:
        return self.add(category, message)

    def add_exception(self, exc: Exception, context: str = "") -> Diagnostic:
        """Record a caught exception, prefixing the message with context if given."""
        category = getattr(exc, "category", Category.MALFORMED_FIELD)
        message = str(exc) or type(exc).__name__
        if context:
            message = f"{context}: {message}"
        severity = Severity.FATAL if category == Category.FATAL else Severity.WARNING
        return self.add(category, message, severity)

    def by_category(self, category: Category) -> list:
        return [d for d in self._items if d.category == category]

    @property
    def fatal(self) -> bool:
        return any(d.severity == Severity.FATAL for d in self._items)

    def clear(self):
        self._items.clear()

    def report(self) -> str:
        """One 'category: message' line per diagnostic, in encounter order."""
        return "".join(f"{d}\n" for d in self._items)

    def __iter__(self):
        return iter(self._items)

    def __len__(self):
        return len(self._items)

    def __bool__(self):
        return bool(self._items)
