import numbers
import pathlib
import typing

import numpy
import numpy.typing as npt

from aaigrid.shared import errors
from aaigrid.shared import geo_data

_HEADER_LABEL_WIDTH = 13

_HEADER_FIELDS = ("ncols", "nrows", "xll", "yll", "dx", "dy", "nodata_value")

_INT32_INFO = numpy.iinfo(numpy.int32)


def _resolve_header_fields(
    header: geo_data.RasterHeader | None, fields: dict[str, typing.Any]
) -> dict[str, typing.Any]:
    """Merges header values with keyword fields, the latter taking precedence."""
    unknown = set(fields) - set(_HEADER_FIELDS)
    if unknown:
        raise TypeError("Unexpected header fields: {}".format(sorted(unknown)))

    resolved = {"nodata_value": geo_data.DEFAULT_NODATA_VALUE}
    if header is not None:
        resolved.update({name: getattr(header, name) for name in _HEADER_FIELDS})
    resolved.update(fields)
    for name in _HEADER_FIELDS:
        if name not in resolved:
            raise errors.MissingFieldError(name)
    return resolved


def _is_real_number(value: typing.Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, (bool, numpy.bool_))


def _is_integral(value: typing.Any) -> bool:
    return isinstance(value, (numbers.Integral, numpy.integer))


def _target_element_type(
    nodata_value: typing.Any, detect_type: bool
) -> geo_data.ElementType:
    if detect_type and _is_integral(nodata_value):
        return geo_data.ElementType.INT32
    return geo_data.ElementType.FLOAT32


def _coerce_to_int32(data: npt.NDArray) -> npt.NDArray[numpy.int32]:
    if numpy.issubdtype(data.dtype, numpy.integer) or data.dtype == numpy.bool_:
        exact = (data >= _INT32_INFO.min) & (data <= _INT32_INFO.max)
    else:
        exact = (
            numpy.isfinite(data)
            & (data == numpy.round(data))
            & (data >= _INT32_INFO.min)
            & (data <= _INT32_INFO.max)
        )
    if not numpy.all(exact):
        bad_value = data[~exact].flat[0]
        raise errors.TypeCoercionError(bad_value.item(), "Int32")
    return data.astype(numpy.int32)


def _coerce(
    data: npt.NDArray, element_type: geo_data.ElementType
) -> npt.NDArray[numpy.int32] | npt.NDArray[numpy.float32]:
    """Converts the data to the element type, failing rather than truncating."""
    if not (numpy.issubdtype(data.dtype, numpy.number) or data.dtype == numpy.bool_):
        raise errors.TypeCoercionError(
            data.flat[0] if data.size else data.dtype, element_type.value
        )
    if numpy.issubdtype(data.dtype, numpy.complexfloating):
        if numpy.any(data.imag != 0):
            raise errors.TypeCoercionError(
                data[data.imag != 0].flat[0].item(), element_type.value
            )
        data = data.real
    if element_type is geo_data.ElementType.INT32:
        return _coerce_to_int32(data)
    return data.astype(numpy.float32)


def _validate(
    data: npt.ArrayLike, fields: dict[str, typing.Any], detect_type: bool
) -> tuple[npt.NDArray, dict[str, typing.Any]]:
    """Checks the data against the header fields and coerces both to one type.

    Returns:
        Coerced data array and header fields with the coerced no-data value.
    """
    array = numpy.asarray(data)
    expected = (fields["nrows"], fields["ncols"])
    if array.shape != expected:
        raise errors.ShapeMismatchError(expected, array.shape)
    for name in ("nrows", "ncols"):
        if not (_is_integral(fields[name]) and fields[name] > 0):
            raise errors.MalformedValueError(name, fields[name])

    for name in ("xll", "yll"):
        if not _is_real_number(fields[name]):
            raise errors.MalformedValueError(name, fields[name])

    nodata_value = fields["nodata_value"]
    # "nan" and "inf" have no decimal point and would read back as Int32 text.
    if not (
        _is_real_number(nodata_value)
        and (_is_integral(nodata_value) or numpy.isfinite(nodata_value))
    ):
        raise errors.MalformedValueError("nodata_value", nodata_value)
    for name in ("dx", "dy"):
        if not (_is_real_number(fields[name]) and fields[name] > 0):
            raise errors.MalformedValueError(name, fields[name])

    element_type = _target_element_type(nodata_value, detect_type)
    coerced_nodata = _coerce(numpy.asarray([nodata_value]), element_type)[0]
    if not numpy.isfinite(coerced_nodata):
        raise errors.MalformedValueError("nodata_value", nodata_value)
    return _coerce(array, element_type), dict(fields, nodata_value=coerced_nodata)


def _format_header_value(value: typing.Any) -> str:
    """Formats a header value, keeping a decimal point on numpy floats."""
    if isinstance(value, numpy.floating):
        return numpy.format_float_positional(value, trim="0")
    return str(value)


def _write_header(fields: dict[str, typing.Any], file: typing.TextIO) -> None:
    lines = (
        ("ncols", fields["ncols"]),
        ("nrows", fields["nrows"]),
        ("xllcorner", fields["xll"]),
        ("yllcorner", fields["yll"]),
        ("dx", fields["dx"]),
        ("dy", fields["dy"]),
        ("NODATA_value", fields["nodata_value"]),
    )
    for label, value in lines:
        file.write(
            "{}{}\n".format(
                label.ljust(_HEADER_LABEL_WIDTH), _format_header_value(value)
            )
        )


def write_header_to_aaigrid(
    header: geo_data.RasterHeader, file: typing.TextIO
) -> None:
    """Writes raster header to a text file stream in AAIGrid format.

    Args:
        header: Raster header.
        file: Output file/stream to write data to.
    """
    _write_header(_resolve_header_fields(header, {}), file)


def write_to_aaigrid(
    file: typing.TextIO,
    data: npt.ArrayLike,
    header: geo_data.RasterHeader | None = None,
    detect_type: bool = False,
    **fields: typing.Any,
) -> typing.TextIO:
    """Writes raster data to a text file/stream in AAIGrid format.

    Header values are taken from `header` and/or keyword fields (`ncols`, `nrows`,
    `xll`, `yll`, `dx`, `dy` and the optional `nodata_value`, -9999.0 by default).
    Everything is validated before anything is written.

    Args:
        file: Output file/stream to write data to.
        data: 2-D array of shape (nrows, ncols).
        header: Optional raster header supplying the fields.
        detect_type: When set, data and no-data value are converted to Int32 if the
            no-data value is an integer and to Float32 otherwise. When not set,
            everything is converted to Float32.
        **fields: Header fields overriding those of `header`.

    Returns:
        The stream the raster was written to.

    Raises:
        MissingFieldError: A header field is supplied neither by header nor fields.
        ShapeMismatchError: Data shape differs from (nrows, ncols).
        MalformedValueError: The no-data value is not a finite number, a corner
            coordinate is not a number or a cell size is not positive.
        TypeCoercionError: A value can't be converted exactly to Int32.
    """
    resolved = _resolve_header_fields(header, fields)
    array, resolved = _validate(data, resolved, detect_type)

    _write_header(resolved, file)
    # Every data line starts with a space.
    row_format = " " + " ".join(["%s"] * array.shape[1])
    numpy.savetxt(file, array, fmt=row_format, newline="\n")
    return file


def write_to_aaigrid_file(
    file_path: pathlib.Path | str,
    data: npt.ArrayLike,
    header: geo_data.RasterHeader | None = None,
    detect_type: bool = False,
    **fields: typing.Any,
) -> pathlib.Path | str:
    """Writes raster data to an AAIGrid file.

    The file is only created once the data passed validation.

    Args:
        file_path: Path to output file.
        data: 2-D array of shape (nrows, ncols).
        header: Optional raster header supplying the fields.
        detect_type: See write_to_aaigrid.
        **fields: Header fields overriding those of `header`.

    Returns:
        The written file path.
    """
    resolved = _resolve_header_fields(header, fields)
    # Validation runs again inside write_to_aaigrid; this one keeps a failed write
    # from leaving an empty file behind.
    _validate(data, resolved, detect_type)
    with open(file_path, "w") as output_fd:
        write_to_aaigrid(output_fd, data, detect_type=detect_type, **resolved)
    return file_path
