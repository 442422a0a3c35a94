import enum
from dataclasses import dataclass, field
from typing import Tuple

import numpy as np
import rasterio

from aaigrid.shared import errors

# The NODATA_value header is optional and defaults to -9999.
DEFAULT_NODATA_VALUE = -9999.0


class ElementType(enum.Enum):
    """Element type of raster cells as determined by the no-data value or the data."""

    INT32 = "Int32"
    FLOAT32 = "Float32"
    UNDETERMINED = "Undetermined"

    @property
    def dtype(self) -> type[np.generic]:
        """Numpy scalar type for a determined element type."""
        if self is ElementType.INT32:
            return np.int32
        if self is ElementType.FLOAT32:
            return np.float32
        raise ValueError("Element type is not determined yet")

    @staticmethod
    def from_text(text: str) -> "ElementType":
        """Infers the element type of a textual value (no decimal point means Int32)."""
        return ElementType.FLOAT32 if "." in text else ElementType.INT32


@dataclass
class RasterHeader:
    """AAIGrid raster header data.

    Raster header data class keeping geometry of a grid together with its no-data
    sentinel, and what is needed to convert geospatial coordinates to raster cells
    and back.

    Args:
        ncols: Number of columns in a raster cell matrix.
        nrows: Number of rows in a raster cell matrix.
        xll: X-coordinate of lower-left corner of a raster region.
        yll: Y-coordinate of lower-left corner of a raster region.
        dx: Cell size along the X-axis.
        dy: Cell size along the Y-axis.
        nodata_value: Special data value that indicates that cells having this value
            correspond to missing data.
        element_type: Element type of the grid, derived from the textual no-data value.
        line_count: Number of stream lines the header occupied when it was read.
        diagnostics: Non-fatal problems found while parsing the header.
    """

    ncols: int
    nrows: int
    xll: float
    yll: float
    dx: float
    dy: float
    nodata_value: float | np.int32 | np.float32 = DEFAULT_NODATA_VALUE
    element_type: ElementType = ElementType.UNDETERMINED
    line_count: int = field(default=0, compare=False)
    diagnostics: Tuple[errors.ConflictingFieldError, ...] = field(
        default=(), compare=False
    )

    @property
    def shape(self) -> Tuple[int, int]:
        """Grid dimensions as (nrows, ncols)."""
        return self.nrows, self.ncols

    def back_transform(self) -> rasterio.Affine:
        """Creates an affine converting raster indices to X/Y coordinates."""
        return rasterio.Affine(
            self.dx,
            0,
            self.xll,
            0,
            -self.dy,
            self.yll + self.nrows * self.dy,
        )

    def forward_transform(self) -> rasterio.Affine:
        """Creates an affine converting X/Y coordinates to raster indices."""
        return ~self.back_transform()
