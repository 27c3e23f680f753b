"""Exceptions raised while compiling templates, parsing lines and exporting."""


class TemplateError(ValueError):
    """Raised when a log format template cannot be compiled."""


class ParseError(ValueError):
    """Base class for a log line that cannot be turned into a record."""


class TemplateMismatch(ParseError):
    """The line's literal structure does not line up with the template."""


class FieldCoercionError(ParseError):
    """A required field is absent or does not have the expected type."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field


class MalformedRequestTarget(ParseError):
    """The ``"METHOD PATH PROTOCOL"`` string could not be split or parsed."""


class ExportIOFailure(Exception):
    """Raised when a CSV export file cannot be created or written."""


class IngestCancelled(Exception):
    """Raised by a signal handler to break out of a blocking read."""
