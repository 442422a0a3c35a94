import dataclasses
import logging
import pathlib
import typing

import numpy
import numpy.typing as npt

from aaigrid.shared import errors
from aaigrid.shared import geo_data

# Mandatory header keywords, in the order their presence is checked.
_REQUIRED_HEADER_KEYWORDS = ("ncols", "nrows", "xllcorner", "yllcorner")

# Number of leading data tokens inspected to guess the element type of a grid whose
# header has no NODATA_value line.
_TYPE_INFERENCE_TOKEN_COUNT = 100

_INT32_INFO = numpy.iinfo(numpy.int32)


def _is_number(token: str) -> bool:
    try:
        float(token)
    except ValueError:
        return False
    return True


def _parse_int(header_map: dict[str, str], key: str) -> int:
    try:
        return int(header_map[key])
    except ValueError:
        raise errors.MalformedValueError(key, header_map[key]) from None


def _parse_float(header_map: dict[str, str], key: str) -> float:
    try:
        return float(header_map[key])
    except ValueError:
        raise errors.MalformedValueError(key, header_map[key]) from None


def _parse_positive(header_map: dict[str, str], key: str, parse) -> typing.Any:
    value = parse(header_map, key)
    if not value > 0:
        raise errors.MalformedValueError(key, header_map[key])
    return value


def _parse_nodata_value(raw: str) -> numpy.int32 | numpy.float32:
    element_type = geo_data.ElementType.from_text(raw)
    try:
        if element_type is geo_data.ElementType.INT32:
            value = int(raw)
            if not _INT32_INFO.min <= value <= _INT32_INFO.max:
                raise ValueError(raw)
            return numpy.int32(value)
        return numpy.float32(float(raw))
    except ValueError:
        raise errors.MalformedValueError("nodata_value", raw) from None


def _read_header_lines(file: typing.TextIO) -> tuple[dict[str, str], int]:
    """Reads raw key/value lines until the first line starting with a number."""
    header_map = {}
    line_count = 0
    while True:
        read_start = file.tell()
        line = file.readline()
        if not line:
            break
        parts = line.split(maxsplit=1)
        if not parts:
            line_count += 1
            continue
        # If the line starts with a number it belongs to the data body: seek back to
        # where the line began so it can be re-read by the grid decoder.
        if _is_number(parts[0]):
            file.seek(read_start)
            break
        key = parts[0].lower()
        if len(parts) < 2:
            raise errors.MalformedValueError(key, "")
        header_map[key] = parts[1].strip()
        line_count += 1
    return header_map, line_count


def read_header(file: typing.TextIO) -> geo_data.RasterHeader:
    """Loading raster header from AAIGrid file/stream.

    Consumes the leading header lines only, leaving the stream positioned at the
    beginning of the data body.

    Args:
        file: Text stream positioned at its start.

    Returns:
        Raster header object.

    Raises:
        MissingFieldError: A mandatory header field is absent.
        MalformedValueError: A header value can't be parsed.
    """
    header_map, line_count = _read_header_lines(file)

    for key in _REQUIRED_HEADER_KEYWORDS:
        if key not in header_map:
            raise errors.MissingFieldError(key)

    ncols = _parse_positive(header_map, "ncols", _parse_int)
    nrows = _parse_positive(header_map, "nrows", _parse_int)
    xll = _parse_float(header_map, "xllcorner")
    yll = _parse_float(header_map, "yllcorner")

    diagnostics = []
    if "cellsize" in header_map:
        for key in ("dx", "dy"):
            if key in header_map:
                conflict = errors.ConflictingFieldError(key)
                logging.warning("%s", conflict)
                diagnostics.append(conflict)
        dx = dy = _parse_positive(header_map, "cellsize", _parse_float)
    else:
        for key in ("dx", "dy"):
            if key not in header_map:
                raise errors.MissingFieldError(key)
        dx = _parse_positive(header_map, "dx", _parse_float)
        dy = _parse_positive(header_map, "dy", _parse_float)

    if "nodata_value" in header_map:
        raw_nodata = header_map["nodata_value"]
        nodata_value = _parse_nodata_value(raw_nodata)
        element_type = geo_data.ElementType.from_text(raw_nodata)
    else:
        nodata_value = geo_data.DEFAULT_NODATA_VALUE
        element_type = geo_data.ElementType.UNDETERMINED

    return geo_data.RasterHeader(
        ncols=ncols,
        nrows=nrows,
        xll=xll,
        yll=yll,
        dx=dx,
        dy=dy,
        nodata_value=nodata_value,
        element_type=element_type,
        line_count=line_count,
        diagnostics=tuple(diagnostics),
    )


def infer_element_type(tokens: typing.Sequence[str]) -> geo_data.ElementType:
    """Guesses the element type from the leading data tokens.

    Args:
        tokens: Data tokens in row-major order.

    Returns:
        FLOAT32 if any of the inspected tokens has a decimal point, INT32 otherwise.
    """
    inspected = tokens[:_TYPE_INFERENCE_TOKEN_COUNT]
    if any("." in token for token in inspected):
        return geo_data.ElementType.FLOAT32
    return geo_data.ElementType.INT32


def _parse_token(token: str, element_type: geo_data.ElementType) -> int | float:
    if element_type is geo_data.ElementType.INT32:
        value = int(token)
        if not _INT32_INFO.min <= value <= _INT32_INFO.max:
            raise OverflowError(token)
        return value
    return float(token)


def _parse_tokens_one_by_one(
    tokens: typing.Sequence[str], element_type: geo_data.ElementType, ncols: int
) -> list[int | float]:
    values = []
    for index, token in enumerate(tokens):
        try:
            values.append(_parse_token(token, element_type))
        except (ValueError, OverflowError):
            raise errors.MalformedDataError(
                index // ncols, index % ncols, token
            ) from None
    return values


def _parse_tokens(
    tokens: list[str], header: geo_data.RasterHeader, element_type: geo_data.ElementType
) -> npt.NDArray:
    dtype = element_type.dtype
    # Numpy parses numeric strings itself; only when it fails the tokens are parsed
    # one by one to report the offending cell.
    try:
        if element_type is geo_data.ElementType.INT32:
            values = numpy.asarray(tokens, dtype=numpy.int64)
            if values.min() < _INT32_INFO.min or values.max() > _INT32_INFO.max:
                raise OverflowError()
        else:
            values = numpy.asarray(tokens, dtype=numpy.float64)
    except (ValueError, OverflowError):
        values = numpy.asarray(
            _parse_tokens_one_by_one(tokens, element_type, header.ncols)
        )
    return values.astype(dtype).reshape(header.shape)


def read_grid(
    file: typing.TextIO,
    header: geo_data.RasterHeader,
    skip_header: bool = False,
) -> npt.NDArray:
    """Loading raster data matrix from AAIGrid file/stream.

    Args:
        file: Text stream positioned right after the header.
        header: Header previously read from the same stream.
        skip_header: Indicates that the stream is positioned at its start, so
            header.line_count lines should be skipped before reading the data.

    Returns:
        A (nrows, ncols) array of int32 or float32 values.

    Raises:
        TruncatedDataError: The stream has less than nrows * ncols data values.
        MalformedDataError: A data value can't be parsed under the element type.
    """
    if skip_header:
        for _ in range(header.line_count):
            file.readline()

    expected = header.nrows * header.ncols
    tokens = file.read().split()
    if len(tokens) < expected:
        raise errors.TruncatedDataError(expected, len(tokens))
    if len(tokens) > expected:
        logging.warning(
            "Ignoring %s values after the last data row", len(tokens) - expected
        )
        tokens = tokens[:expected]

    element_type = header.element_type
    if element_type is geo_data.ElementType.UNDETERMINED:
        element_type = infer_element_type(tokens)

    return _parse_tokens(tokens, header, element_type)


@typing.overload
def read_from_aaigrid(
    file: typing.TextIO, lazy: typing.Literal[True]
) -> geo_data.RasterHeader: ...


@typing.overload
def read_from_aaigrid(
    file: typing.TextIO, lazy: typing.Literal[False] = ...
) -> tuple[npt.NDArray, geo_data.RasterHeader]: ...


def read_from_aaigrid(file: typing.TextIO, lazy: bool = False):
    """Loading raster data from AAIGrid file/stream.

    Data elements are assumed to be of the same type as the no-data value. If the
    header has no NODATA_value line, the type is inferred from the data itself.

    Args:
        file: Text stream to load from.
        lazy: Indicates that only the header should be loaded, whereas the data
            should be skipped.

    Returns:
        Header if lazy, otherwise a tuple of data array and header. The returned
        header carries the element type resolved while reading the data.
    """
    header = read_header(file)
    if lazy:
        return header

    data = read_grid(file, header)
    if header.element_type is geo_data.ElementType.UNDETERMINED:
        element_type = (
            geo_data.ElementType.INT32
            if data.dtype == numpy.int32
            else geo_data.ElementType.FLOAT32
        )
        header = dataclasses.replace(
            header,
            nodata_value=element_type.dtype(header.nodata_value),
            element_type=element_type,
        )
    return data, header


def read_from_aaigrid_file(file_path: pathlib.Path | str, lazy: bool = False):
    """Loading raster data from an AAIGrid file.

    Args:
        file_path: Path to the file.
        lazy: Indicates that only the header should be loaded.

    Returns:
        Same as read_from_aaigrid.
    """
    with open(file_path, "r") as input_fd:
        return read_from_aaigrid(input_fd, lazy=lazy)
