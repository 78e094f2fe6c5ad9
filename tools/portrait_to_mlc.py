#!/usr/bin/env python3
"""
Convert a portrait image into a dynamic MLC file.

What it does
------------
- Digitizes the image to one row per leaf pair (default 42 x 140).
- Searches the compression factor so the longest leaf-pair trajectory
  fills, but never exceeds, the device control-point limit.
- Writes the Varian-style MLC file and, optionally, the trajectory table.

Usage example
-------------
python tools/portrait_to_mlc.py \
  --image portraits/einstein.png \
  --out einstein.mlc \
  --config configs/varian_120m.yaml \
  --table einstein_trajectories.csv \
  --preview einstein_gray.png
"""

import argparse
import logging
import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from PortraitDMLC.config import ConversionConfig, load_config
from PortraitDMLC.errors import LimitExceededError, SequencingError
from PortraitDMLC.pipeline import convert_image


logger = logging.getLogger("portrait_to_mlc")


def build_config(args) -> ConversionConfig:
    config = load_config(args.config) if args.config else ConversionConfig()
    if args.fields_limit is not None:
        config.fitter.fields_limit = args.fields_limit
    if args.initial_factor is not None:
        config.fitter.initial_factor = args.initial_factor
    if args.increment is not None:
        config.fitter.increment_factor = args.increment
    if args.processes is not None:
        config.fitter.processes = args.processes
    if args.patient_id is not None:
        config.header.patient_id = args.patient_id
    config.validate()
    return config


def main(argv=None):
    p = argparse.ArgumentParser(description="Convert a portrait image into a dynamic MLC file")
    p.add_argument("--image", required=True, help="Input image (PNG, JPEG, BMP, ...)")
    p.add_argument("--out", required=True, help="Output MLC file")
    p.add_argument("--config", default=None, help="YAML or JSON conversion settings")
    p.add_argument("--fields-limit", type=int, default=None, help="Max control points per field")
    p.add_argument("--initial-factor", type=float, default=None)
    p.add_argument("--increment", type=float, default=None, help="Compression factor step")
    p.add_argument("--processes", type=int, default=None, help="Worker processes for row sequencing")
    p.add_argument("--patient-id", default=None)
    p.add_argument("--table", default=None, help="Optional trajectory table CSV")
    p.add_argument("--preview", default=None, help="Optional grayscale preview image")
    p.add_argument("--verbose", "-v", action="store_true", help="Log every search iteration")
    args = p.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    try:
        config = build_config(args)
        result = convert_image(
            args.image,
            args.out,
            config=config,
            table_path=args.table,
            preview_path=args.preview,
        )
    except LimitExceededError as e:
        logger.error(f"{e} (pair={e.pair_index}, length={e.length}, limit={e.limit})")
        return 1
    except (SequencingError, FileNotFoundError, RuntimeError) as e:
        logger.error(str(e))
        return 1

    print(f"Factor: {result.fit.factor:g}")
    print(f"Max trajectory length: {result.fit.max_length}/{result.field.fields_limit}")
    print(f"MLC file: {result.output_path}")
    if result.table_path is not None:
        print(f"Trajectory table: {result.table_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
