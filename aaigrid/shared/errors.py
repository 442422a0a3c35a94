from typing import Any, Tuple


class AAIGridError(ValueError):
    """Base class for errors raised while reading or writing AAIGrid rasters."""


class MissingFieldError(AAIGridError):
    """A mandatory header field is absent.

    Args:
        field: Name of the missing header field.
    """

    def __init__(self, field: str):
        super().__init__("{} not found in file header".format(field))
        self.field = field


class MalformedValueError(AAIGridError):
    """A header value can't be parsed as (or doesn't satisfy) its expected type.

    Args:
        field: Name of the header field.
        raw: The offending value as it was read or supplied.
    """

    def __init__(self, field: str, raw: Any):
        super().__init__("Invalid value for {}: {!r}".format(field, raw))
        self.field = field
        self.raw = raw


class ShapeMismatchError(AAIGridError):
    """Grid dimensions disagree with the declared nrows/ncols."""

    def __init__(self, expected: Tuple[int, ...], actual: Tuple[int, ...]):
        super().__init__(
            "{} rows and {} cols incompatible with array of size {}".format(
                expected[0], expected[1], actual
            )
        )
        self.expected = expected
        self.actual = actual


class TruncatedDataError(AAIGridError):
    """The data body ended before nrows * ncols values were read."""

    def __init__(self, expected: int, actual: int):
        super().__init__(
            "Expected {} data values, found only {}".format(expected, actual)
        )
        self.expected = expected
        self.actual = actual


class MalformedDataError(AAIGridError):
    """A data token can't be parsed under the resolved element type.

    Args:
        row: 0-based row index of the offending token.
        col: 0-based column index of the offending token.
        raw: The offending token.
    """

    def __init__(self, row: int, col: int, raw: str):
        super().__init__(
            "Invalid data value {!r} at row {}, column {}".format(raw, row, col)
        )
        self.row = row
        self.col = col
        self.raw = raw


class TypeCoercionError(AAIGridError):
    """A grid value can't be represented exactly in the target element type."""

    def __init__(self, value: Any, target_type: str):
        super().__init__("Can't convert {!r} to {} exactly".format(value, target_type))
        self.value = value
        self.target_type = target_type


class ConflictingFieldError(UserWarning):
    """Mutually exclusive header fields are both present.

    This is a diagnostic, never raised: the field is ignored in favor of the one
    taking precedence (e.g. dx/dy in favor of cellsize).
    """

    def __init__(self, field: str, preferred: str = "cellsize"):
        super().__init__("Provided {}, ignoring {}".format(preferred, field))
        self.field = field
        self.preferred = preferred
