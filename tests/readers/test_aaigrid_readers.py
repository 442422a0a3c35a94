import io
import pathlib
import tempfile
import textwrap

import numpy
from numpy import testing
import pytest

from aaigrid.readers import aaigrid_readers
from aaigrid.shared import errors
from aaigrid.shared import geo_data

SMALL_ASC = textwrap.dedent(
    """\
    ncols        4
    nrows        4
    xllcorner    15
    yllcorner    12
    dx           1
    dy           1
    NODATA_value  1
     1 1 1 1
     2 2 2 2
     3 3 3 3
     4 4 4 4
    """
)


def test_read_small_grid_as_int32():
    with io.StringIO(SMALL_ASC) as asc_file:
        data, header = aaigrid_readers.read_from_aaigrid(asc_file)

    assert data.dtype == numpy.int32
    assert data.shape == (4, 4)
    assert data[2][3] == 3
    testing.assert_array_equal(data[1], [2, 2, 2, 2])
    assert header == geo_data.RasterHeader(
        ncols=4,
        nrows=4,
        xll=15.0,
        yll=12.0,
        dx=1.0,
        dy=1.0,
        nodata_value=numpy.int32(1),
        element_type=geo_data.ElementType.INT32,
    )
    assert header.line_count == 7


def test_read_lazy_returns_header_only():
    with io.StringIO(SMALL_ASC) as asc_file:
        header = aaigrid_readers.read_from_aaigrid(asc_file, lazy=True)

        assert isinstance(header, geo_data.RasterHeader)
        assert header.shape == (4, 4)
        # The stream is left at the beginning of the data body.
        assert asc_file.readline() == " 1 1 1 1\n"


def test_read_header_float_nodata_gives_float32():
    with io.StringIO(
        "\n".join(
            (
                "ncols 2",
                "nrows 1",
                "xllcorner 0.0",
                "yllcorner 0.0",
                "cellsize 2.0",
                "NODATA_value 1.0",
                " 1 2",
            )
        )
    ) as asc_file:
        data, header = aaigrid_readers.read_from_aaigrid(asc_file)

    assert header.element_type == geo_data.ElementType.FLOAT32
    assert header.nodata_value == numpy.float32(1.0)
    assert data.dtype == numpy.float32
    testing.assert_array_equal(data, [[1.0, 2.0]])


def test_read_header_keys_are_case_insensitive_and_whitespace_tolerant():
    with io.StringIO(
        "NCOLS\t 3\n"
        "  NRows    2  \n"
        "XLLCorner 100.5\n"
        "YLLCORNER -4\n"
        "CellSize 0.5\n"
        "nodata_value -9999\n"
        "1   2 3\n"
        "  4 5\t6\n"
    ) as asc_file:
        data, header = aaigrid_readers.read_from_aaigrid(asc_file)

    assert header == geo_data.RasterHeader(
        ncols=3,
        nrows=2,
        xll=100.5,
        yll=-4.0,
        dx=0.5,
        dy=0.5,
        nodata_value=numpy.int32(-9999),
        element_type=geo_data.ElementType.INT32,
    )
    testing.assert_array_equal(data, [[1, 2, 3], [4, 5, 6]])


@pytest.mark.parametrize(
    "missing_line, field",
    [
        ("ncols 2", "ncols"),
        ("nrows 1", "nrows"),
        ("xllcorner 0", "xllcorner"),
        ("yllcorner 0", "yllcorner"),
    ],
)
def test_read_header_missing_mandatory_field(missing_line, field):
    lines = ["ncols 2", "nrows 1", "xllcorner 0", "yllcorner 0", "dx 1", "dy 1"]
    lines.remove(missing_line)
    with io.StringIO("\n".join(lines + [" 1 2"])) as asc_file:
        with pytest.raises(errors.MissingFieldError) as error:
            aaigrid_readers.read_header(asc_file)
    assert error.value.field == field


def test_read_header_reports_first_missing_field_in_order():
    with io.StringIO("dx 1\ndy 1\n 1 2\n") as asc_file:
        with pytest.raises(errors.MissingFieldError) as error:
            aaigrid_readers.read_header(asc_file)
    assert error.value.field == "ncols"


def test_read_header_requires_dx_then_dy_without_cellsize():
    with io.StringIO(
        "ncols 2\nnrows 1\nxllcorner 0\nyllcorner 0\ndy 1\n 1 2\n"
    ) as asc_file:
        with pytest.raises(errors.MissingFieldError) as error:
            aaigrid_readers.read_header(asc_file)
    assert error.value.field == "dx"

    with io.StringIO(
        "ncols 2\nnrows 1\nxllcorner 0\nyllcorner 0\ndx 1\n 1 2\n"
    ) as asc_file:
        with pytest.raises(errors.MissingFieldError) as error:
            aaigrid_readers.read_header(asc_file)
    assert error.value.field == "dy"


def test_read_header_cellsize_takes_precedence_over_dx(caplog):
    with io.StringIO(
        textwrap.dedent(
            """\
            ncols 2
            nrows 1
            xllcorner 0
            yllcorner 0
            dx 5
            cellsize 2
             1 2
            """
        )
    ) as asc_file:
        header = aaigrid_readers.read_header(asc_file)

    assert header.dx == 2.0
    assert header.dy == 2.0
    assert [d.field for d in header.diagnostics] == ["dx"]
    assert "ignoring dx" in caplog.text


def test_read_header_cellsize_ignores_both_dx_and_dy(caplog):
    with io.StringIO(
        "ncols 2\nnrows 1\nxllcorner 0\nyllcorner 0\n"
        "dx 5\ndy 6\ncellsize 2\n 1 2\n"
    ) as asc_file:
        header = aaigrid_readers.read_header(asc_file)

    assert (header.dx, header.dy) == (2.0, 2.0)
    assert [d.field for d in header.diagnostics] == ["dx", "dy"]
    assert "ignoring dx" in caplog.text
    assert "ignoring dy" in caplog.text


def test_read_header_dx_dy_separately():
    with io.StringIO(
        "ncols 2\nnrows 1\nxllcorner 0\nyllcorner 0\ndx 2\ndy 3\n 1 2\n"
    ) as asc_file:
        header = aaigrid_readers.read_header(asc_file)
    assert (header.dx, header.dy) == (2.0, 3.0)
    assert header.diagnostics == ()


@pytest.mark.parametrize(
    "line, field",
    [
        ("ncols two", "ncols"),
        ("ncols 0", "ncols"),
        ("nrows 1.5", "nrows"),
        ("xllcorner east", "xllcorner"),
        ("cellsize -1", "cellsize"),
        ("NODATA_value 1e3", "nodata_value"),
        ("NODATA_value 99999999999", "nodata_value"),
        ("NODATA_value none.", "nodata_value"),
    ],
)
def test_read_header_malformed_value(line, field):
    lines = {
        "ncols": "ncols 2",
        "nrows": "nrows 1",
        "xllcorner": "xllcorner 0",
        "yllcorner": "yllcorner 0",
        "cellsize": "cellsize 1",
    }
    key = line.split()[0].lower()
    lines[key] = line
    with io.StringIO("\n".join(list(lines.values()) + [" 1 2"])) as asc_file:
        with pytest.raises(errors.MalformedValueError) as error:
            aaigrid_readers.read_header(asc_file)
    assert error.value.field == field


def test_read_missing_nodata_infers_int32_from_data():
    with io.StringIO(
        "ncols 3\nnrows 2\nxllcorner 0\nyllcorner 0\ncellsize 1\n 0 1 2\n 3 4 5\n"
    ) as asc_file:
        header = aaigrid_readers.read_header(asc_file)
        assert header.nodata_value == -9999.0
        assert header.element_type == geo_data.ElementType.UNDETERMINED

        data = aaigrid_readers.read_grid(asc_file, header)
    assert data.dtype == numpy.int32
    testing.assert_array_equal(data, [[0, 1, 2], [3, 4, 5]])


def test_read_missing_nodata_infers_float32_from_data():
    with io.StringIO(
        "ncols 3\nnrows 2\nxllcorner 0\nyllcorner 0\ncellsize 1\n 0 1 2\n 3 4.5 5\n"
    ) as asc_file:
        data, header = aaigrid_readers.read_from_aaigrid(asc_file)

    assert data.dtype == numpy.float32
    testing.assert_array_equal(data, [[0.0, 1.0, 2.0], [3.0, 4.5, 5.0]])
    assert header.element_type == geo_data.ElementType.FLOAT32
    assert header.nodata_value == numpy.float32(-9999.0)


def test_infer_element_type_inspects_leading_tokens_only():
    tokens = ["1"] * 100 + ["1.5"]
    assert aaigrid_readers.infer_element_type(tokens) == geo_data.ElementType.INT32
    assert (
        aaigrid_readers.infer_element_type(tokens[-5:])
        == geo_data.ElementType.FLOAT32
    )


def test_read_grid_ignores_extra_values(caplog):
    with io.StringIO(SMALL_ASC + " 5 5\n") as asc_file:
        data, _ = aaigrid_readers.read_from_aaigrid(asc_file)

    assert data.shape == (4, 4)
    testing.assert_array_equal(data[3], [4, 4, 4, 4])
    assert "Ignoring 2 values after the last data row" in caplog.text


def test_read_grid_truncated():
    with io.StringIO(SMALL_ASC.rsplit("\n", 2)[0]) as asc_file:
        with pytest.raises(errors.TruncatedDataError) as error:
            aaigrid_readers.read_from_aaigrid(asc_file)
    assert error.value.expected == 16
    assert error.value.actual == 12


def test_read_grid_malformed_token_reports_position():
    with io.StringIO(SMALL_ASC.replace(" 3 3 3 3", " 3 3 3.5 3")) as asc_file:
        with pytest.raises(errors.MalformedDataError) as error:
            aaigrid_readers.read_from_aaigrid(asc_file)
    assert (error.value.row, error.value.col, error.value.raw) == (2, 2, "3.5")


def test_read_grid_int32_overflow_is_malformed():
    with io.StringIO(SMALL_ASC.replace(" 4 4 4 4", " 4 4 4 3000000000")) as asc_file:
        with pytest.raises(errors.MalformedDataError) as error:
            aaigrid_readers.read_from_aaigrid(asc_file)
    assert (error.value.row, error.value.col) == (3, 3)


def test_read_grid_non_numeric_float_token():
    with io.StringIO(
        "ncols 2\nnrows 1\nxllcorner 0\nyllcorner 0\ncellsize 1\n"
        "NODATA_value -1.0\n 1.0 abc\n"
    ) as asc_file:
        with pytest.raises(errors.MalformedDataError) as error:
            aaigrid_readers.read_from_aaigrid(asc_file)
    assert (error.value.row, error.value.col, error.value.raw) == (0, 1, "abc")


def test_read_grid_skipping_header_lines():
    with io.StringIO(SMALL_ASC) as asc_file:
        header = aaigrid_readers.read_header(asc_file)
        asc_file.seek(0)
        data = aaigrid_readers.read_grid(asc_file, header, skip_header=True)
    testing.assert_array_equal(data[:, 0], [1, 2, 3, 4])


def test_read_from_aaigrid_file():
    with tempfile.TemporaryDirectory() as temp_dir:
        file_path = pathlib.Path(temp_dir) / "small.asc"
        file_path.write_text(SMALL_ASC)

        data, header = aaigrid_readers.read_from_aaigrid_file(file_path)
        lazy_header = aaigrid_readers.read_from_aaigrid_file(file_path, lazy=True)

    assert data.dtype == numpy.int32
    assert lazy_header == header


def test_read_from_missing_file():
    with pytest.raises(FileNotFoundError):
        aaigrid_readers.read_from_aaigrid_file("doesntexist.asc")
