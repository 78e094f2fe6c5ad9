"""
Synthetic Portrait -> Dynamic MLC File

This example runs the full sequencing workflow on a generated image,
without needing a photograph:
1. Build a synthetic 8-bit intensity grid (a shaded disc)
2. Search the compression factor for a 499 control point limit
3. Assemble the field
4. Write the MLC file and the trajectory table
"""

import numpy as np
import sys
import os
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from PortraitDMLC.compression import fit_compression
from PortraitDMLC.config import ConversionConfig
from PortraitDMLC.field_assembly import assemble_field
from PortraitDMLC.mlc_writer import write_mlc_file, write_trajectory_tables


def shaded_disc(height=42, width=140, radius_frac=0.45):
    """Disc of intensity falling off from the centre, 0..255."""
    y, x = np.mgrid[0:height, 0:width]
    cy, cx = (height - 1) / 2.0, (width - 1) / 2.0
    # columns are 0.1 cm, rows are leaf widths (~0.5 cm): stretch y
    r = np.hypot((x - cx) / width, (y - cy) / height * (height / width) * 5.0)
    disc = np.clip(1.0 - r / radius_frac, 0.0, 1.0)
    return np.rint(255.0 * disc)


def main(output_dir="."):
    output_dir = Path(output_dir)
    config = ConversionConfig()

    print("\n" + "=" * 70)
    print("SYNTHETIC PORTRAIT -> DYNAMIC MLC")
    print("=" * 70)

    print("\n[1/4] Building intensity grid...")
    grid = shaded_disc(config.digitizer.target_height, config.digitizer.target_width)
    print(f"  ✓ Grid: {grid.shape[0]} rows x {grid.shape[1]} columns, max={grid.max():.0f}")

    print("\n[2/4] Searching compression factor...")
    fit = fit_compression(
        grid,
        fields_limit=config.fitter.fields_limit,
        initial_factor=config.fitter.initial_factor,
        increment_factor=config.fitter.increment_factor,
    )
    print(f"  ✓ Factor: {fit.factor:g} after {fit.iterations} iterations")
    print(f"    Longest trajectory: {fit.max_length}/{config.fitter.fields_limit} (pair {fit.worst_pair})")

    print("\n[3/4] Assembling field...")
    field = assemble_field(fit.trajectories, config.fitter.fields_limit, factor=fit.factor)
    n_static = sum(1 for n in field.source_lengths.values() if n == 1)
    print(f"  ✓ {field.n_pairs} leaf pairs, {n_static} static")

    print("\n[4/4] Writing output...")
    mlc_path = write_mlc_file(field, output_dir / "synthetic_portrait.mlc", config.geometry, config.header)
    table_path = write_trajectory_tables(field, output_dir / "synthetic_portrait.csv")
    print(f"  ✓ MLC file: {mlc_path}")
    print(f"  ✓ Trajectory table: {table_path}")


if __name__ == "__main__":
    main(sys.argv[1] if len(sys.argv) > 1 else ".")
