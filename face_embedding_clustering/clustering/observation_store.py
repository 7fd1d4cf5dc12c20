"""
Row-major storage for the embedding batch handed to the engine.
"""

import numpy as np
from typing import Sequence, Union
import logging

from ..core.exceptions import DataValidationError, DimensionMismatchError


logger = logging.getLogger(__name__)


class ObservationStore:
    """
    Fixed-width, read-only N x D buffer of embedding vectors.

    Every row has exactly ``n_cols`` values. Rows are returned as read-only
    views into one contiguous float64 array, so row access is O(1).
    """

    def __init__(self, data: np.ndarray):
        if data.ndim != 2:
            raise DataValidationError(
                "Observation data must be 2-dimensional",
                expected_shape="(n_rows, n_cols)",
                actual_shape=data.shape
            )
        if data.size and not np.all(np.isfinite(data)):
            raise DataValidationError("Observation data contains NaN or infinite values")

        self._data = np.array(data, dtype=np.float64, order='C', copy=True)
        self._data.setflags(write=False)

    @classmethod
    def from_rows(cls, rows: Union[np.ndarray, Sequence[Sequence[float]]]) -> 'ObservationStore':
        """
        Build a store from nested sequences or a 2-D array.

        Raises:
            DimensionMismatchError: If rows differ in length
        """
        if isinstance(rows, ObservationStore):
            return rows

        if isinstance(rows, np.ndarray):
            if rows.ndim == 1 and rows.size == 0:
                return cls(np.empty((0, 0), dtype=np.float64))
            return cls(np.array(rows, dtype=np.float64))

        rows = list(rows)
        if not rows:
            return cls(np.empty((0, 0), dtype=np.float64))

        n_cols = None
        for i, row in enumerate(rows):
            if np.ndim(row) != 1:
                raise DataValidationError(
                    f"Observation data must be 2-dimensional, row {i} is not a vector",
                    expected_shape="(n_rows, n_cols)",
                    actual_shape=(len(rows),)
                )
            if n_cols is None:
                n_cols = len(row)
            elif len(row) != n_cols:
                raise DimensionMismatchError(
                    f"Row {i} has {len(row)} values, expected {n_cols}",
                    expected_dim=n_cols,
                    actual_dim=len(row),
                    row=i
                )

        try:
            data = np.array(rows, dtype=np.float64).reshape(len(rows), n_cols)
        except (TypeError, ValueError) as e:
            raise DataValidationError(f"Observation rows must be numeric: {e}") from e

        return cls(data)

    @classmethod
    def from_flat(cls, buffer: Sequence[float], rows: int, cols: int) -> 'ObservationStore':
        """
        Build a store from a flat row-major buffer plus explicit shape.

        Raises:
            DimensionMismatchError: If the buffer length is not rows * cols
        """
        if rows < 0 or cols < 0:
            raise DataValidationError("rows and cols must be non-negative",
                                      actual_shape=(rows, cols))

        flat = np.asarray(buffer, dtype=np.float64).ravel()
        if flat.size != rows * cols:
            raise DimensionMismatchError(
                f"Flat buffer holds {flat.size} values, expected {rows} x {cols}",
                expected_dim=rows * cols,
                actual_dim=flat.size
            )
        return cls(flat.reshape(rows, cols))

    @property
    def n_rows(self) -> int:
        return self._data.shape[0]

    @property
    def n_cols(self) -> int:
        return self._data.shape[1]

    @property
    def shape(self) -> tuple:
        return self._data.shape

    def __len__(self) -> int:
        return self.n_rows

    def row(self, index: int) -> np.ndarray:
        """Return the D contiguous values of one observation."""
        if not 0 <= index < self.n_rows:
            raise IndexError(f"row index {index} out of range for {self.n_rows} rows")
        return self._data[index]

    def element(self, row: int, col: int) -> float:
        """Return a single value by (row, col)."""
        if not 0 <= col < self.n_cols:
            raise IndexError(f"column index {col} out of range for {self.n_cols} columns")
        return float(self.row(row)[col])

    def as_array(self) -> np.ndarray:
        """Return the whole buffer as a read-only array."""
        return self._data

    def __repr__(self):
        return f"{self.__class__.__name__}(n_rows={self.n_rows}, n_cols={self.n_cols})"
