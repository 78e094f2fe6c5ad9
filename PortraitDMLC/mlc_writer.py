"""
Output of assembled fields.

- format_mlc_file() / write_mlc_file(): Varian-style dynamic MLC file
  (one "Field" block per control point, one record per leaf)
- trajectory_table() / write_trajectory_tables(): per-pair control point
  tables as a pandas DataFrame / CSV

Leaf convention: leaves travel towards decreasing columns. The leading
leaf is on bank B, the trailing leaf on bank A. Bank B values use the
Varian sign convention (positive = retracted past the central axis
towards B), so a closed pair at column c writes A = -B.
"""

import logging
from pathlib import Path
from typing import List, Optional

import numpy as np
import pandas as pd

from .config import MLCGeometry, PatientHeader
from .errors import ConfigurationError
from .field_assembly import Field


logger = logging.getLogger(__name__)

FILE_REVISION = "H"
TREATMENT_TYPE = "Dynamic Dose"

TABLE_COLUMNS = ["pair", "control_point", "mu", "leading", "trailing"]


def leaf_position_cm(column, bank: str, geometry: MLCGeometry):
    """
    Convert a grid column to a leaf record value in cm.

    Parameters
    ----------
    column : int, float or np.ndarray
        Grid column(s)
    bank : str
        'A' (trailing leaf) or 'B' (leading leaf)
    geometry : MLCGeometry
        Column scale and per-bank rest positions
    """
    offset = np.asarray(column, dtype=np.float64) * geometry.scale_cm
    if bank == "A":
        value = geometry.bank_a_rest_cm + offset
    elif bank == "B":
        value = geometry.bank_b_rest_cm - offset
    else:
        raise ValueError(f"Unknown MLC bank: {bank}. Use 'A' or 'B'.")
    return float(value) if np.ndim(value) == 0 else value


def _bank_positions(field: Field, geometry: MLCGeometry):
    """
    Leaf values for every device leaf at every control point.

    Returns
    -------
    bank_a, bank_b : np.ndarray
        Shape (fields_limit, n_leaf_pairs) in cm
    """
    first_leaf = geometry.first_leaf_for(field.n_pairs)
    n_cp = field.fields_limit

    bank_a = np.full((n_cp, geometry.n_leaf_pairs), leaf_position_cm(0, "A", geometry))
    bank_b = np.full((n_cp, geometry.n_leaf_pairs), leaf_position_cm(0, "B", geometry))

    data = field.to_array()  # (n_pairs, n_cp, 3)
    for row in range(field.n_pairs):
        leaf = first_leaf - 1 + row
        bank_b[:, leaf] = leaf_position_cm(data[row, :, 1], "B", geometry)
        bank_a[:, leaf] = leaf_position_cm(data[row, :, 2], "A", geometry)

    return bank_a, bank_b


def format_mlc_file(
    field: Field,
    geometry: Optional[MLCGeometry] = None,
    header: Optional[PatientHeader] = None
) -> str:
    """
    Render an assembled Field as dynamic MLC file text.

    Parameters
    ----------
    field : Field
        Assembled field (every pair has fields_limit control points)
    geometry : MLCGeometry, optional
        Device geometry; defaults to MLCGeometry()
    header : PatientHeader, optional
        Identity fields; blank by default

    Returns
    -------
    str
        File contents (CRLF line endings are left to the caller)

    Raises
    ------
    ConfigurationError
        If the field has more pairs than the device has leaf pairs
    """
    geometry = geometry or MLCGeometry()
    header = header or PatientHeader()
    geometry.validate()

    bank_a, bank_b = _bank_positions(field, geometry)
    n_cp = field.fields_limit

    lines: List[str] = [
        f"File Rev = {FILE_REVISION}",
        f"Treatment = {TREATMENT_TYPE}",
        f"Last Name = {header.last_name}",
        f"First Name = {header.first_name}",
        f"Patient ID = {header.patient_id}",
        f"Number of Fields = {n_cp}",
        f"Model = {geometry.model}",
        f"Tolerance = {geometry.tolerance_cm:.2f}",
        "",
    ]

    for cp in range(n_cp):
        index = cp / (n_cp - 1) if n_cp > 1 else 1.0
        lines.extend([
            f"Field = {cp}",
            f"Index = {index:.4f}",
            "Carriage Group = 1",
            "Operator = ",
            "Collimator = 0.0",
        ])
        for leaf in range(geometry.n_leaf_pairs):
            lines.append(f"Leaf {leaf + 1:2d}A = {bank_a[cp, leaf]:7.2f}")
        for leaf in range(geometry.n_leaf_pairs):
            lines.append(f"Leaf {leaf + 1:2d}B = {bank_b[cp, leaf]:7.2f}")
        lines.extend([
            "Note = 0",
            "Shape = 0",
            "Magnification = 1.00",
            "",
        ])

    return "\n".join(lines)


def write_mlc_file(
    field: Field,
    path,
    geometry: Optional[MLCGeometry] = None,
    header: Optional[PatientHeader] = None
) -> Path:
    """Write the dynamic MLC file for a Field. Returns the output path."""
    path = Path(path)
    text = format_mlc_file(field, geometry, header)
    path.write_text(text, encoding="ascii", errors="replace")
    logger.info(
        f"Saved MLC file: {path} ({field.n_pairs} leaf pairs, {field.fields_limit} control points)"
    )
    return path


def trajectory_table(field: Field) -> pd.DataFrame:
    """
    Flatten a Field into a long-format table.

    Returns
    -------
    pd.DataFrame
        Columns: pair, control_point, mu, leading, trailing (grid columns)
    """
    data = field.to_array()
    n_pairs, n_cp = data.shape[0], field.fields_limit
    pairs = np.repeat(np.array(field.pair_indices(), dtype=np.int64), n_cp)
    control_points = np.tile(np.arange(n_cp, dtype=np.int64), n_pairs)
    flat = data.reshape(-1, 3)

    return pd.DataFrame({
        "pair": pairs,
        "control_point": control_points,
        "mu": flat[:, 0],
        "leading": flat[:, 1],
        "trailing": flat[:, 2],
    }, columns=TABLE_COLUMNS)


def write_trajectory_tables(field: Field, path) -> Path:
    """Write the Field's trajectory table as CSV. Returns the output path."""
    path = Path(path)
    df = trajectory_table(field)
    df.to_csv(path, index=False)
    logger.info(f"Saved trajectory table: {path} ({len(df)} rows)")
    return path
