"""
End-to-end tests: intensity grid / image -> field -> MLC file.
"""

import importlib.util
import pytest
import numpy as np
import pandas as pd
import SimpleITK as sitk
import sys
import os

import yaml

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
sys.path.insert(0, ROOT)

from PortraitDMLC.config import ConversionConfig
from PortraitDMLC.errors import LimitExceededError
from PortraitDMLC.pipeline import convert_image, convert_intensity_grid


SMALL_CONFIG = {
    "fitter": {"fields_limit": 60, "initial_factor": 4, "increment_factor": 4},
    "geometry": {"n_leaf_pairs": 10, "column_count": 20, "travel_distance_cm": 4.0,
                 "bank_a_rest_cm": -2.0, "bank_b_rest_cm": 2.0},
    "digitizer": {"target_height": 6, "target_width": 20},
}


def _gradient_rgb(height, width):
    """Dark on the left, light on the right, with a dark band in the middle rows."""
    ramp = np.linspace(0, 255, width, dtype=np.float64)
    gray = np.tile(ramp, (height, 1))
    gray[height // 3: 2 * height // 3, :] *= 0.3
    rgb = np.repeat(gray[:, :, None], 3, axis=2)
    return np.clip(rgb, 0, 255).astype(np.uint8)


def test_convert_intensity_grid():
    config = ConversionConfig.from_dict(SMALL_CONFIG)
    grid = np.array([
        [0, 255, 255, 0, 0],
        [0, 0, 0, 0, 0],
        [128, 64, 255, 32, 0],
    ], dtype=float)

    result = convert_intensity_grid(grid, config)

    assert result.field.n_pairs == 3
    assert result.field.fields_limit == 60
    assert result.fit.max_length <= 60
    assert result.field.factor == result.fit.factor
    arr = result.field.to_array()
    assert arr.shape == (3, 60, 3)
    # static row stays closed at the rest column
    assert np.all(arr[1, :, 1:] == 0)
    # every pair ends closed
    assert np.all(arr[:, -1, 1] == arr[:, -1, 2])


def test_convert_intensity_grid_limit_error():
    config = ConversionConfig.from_dict({
        "fitter": {"fields_limit": 3, "initial_factor": 10, "increment_factor": 10},
    })

    with pytest.raises(LimitExceededError):
        convert_intensity_grid(np.array([[0, 255, 0]], dtype=float), config)


def test_convert_image(tmp_path):
    image_path = tmp_path / "portrait.png"
    sitk.WriteImage(sitk.GetImageFromArray(_gradient_rgb(60, 200), isVector=True), str(image_path))
    config = ConversionConfig.from_dict(SMALL_CONFIG)

    result = convert_image(
        image_path,
        tmp_path / "portrait.mlc",
        config=config,
        table_path=tmp_path / "portrait.csv",
        preview_path=tmp_path / "preview.png",
    )

    assert result.grid.shape == (6, 20)
    assert result.output_path.exists()
    text = result.output_path.read_text()
    assert text.startswith("File Rev = H\n")
    assert "Number of Fields = 60" in text
    assert "Leaf 10B" in text

    df = pd.read_csv(result.table_path)
    assert len(df) == 6 * 60
    assert (tmp_path / "preview.png").exists()


def _load_cli():
    spec = importlib.util.spec_from_file_location(
        "portrait_to_mlc", os.path.join(ROOT, "tools", "portrait_to_mlc.py")
    )
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_cli_end_to_end(tmp_path, capsys):
    image_path = tmp_path / "portrait.png"
    sitk.WriteImage(sitk.GetImageFromArray(_gradient_rgb(60, 200), isVector=True), str(image_path))
    config_path = tmp_path / "settings.yaml"
    config_path.write_text(yaml.safe_dump(SMALL_CONFIG))
    out_path = tmp_path / "out.mlc"

    cli = _load_cli()
    code = cli.main([
        "--image", str(image_path),
        "--out", str(out_path),
        "--config", str(config_path),
        "--patient-id", "PHANTOM01",
    ])

    assert code == 0
    assert "Patient ID = PHANTOM01" in out_path.read_text()
    assert "Factor:" in capsys.readouterr().out


def test_cli_reports_limit_error(tmp_path):
    image_path = tmp_path / "black.png"
    sitk.WriteImage(
        sitk.GetImageFromArray(np.zeros((60, 200, 3), dtype=np.uint8), isVector=True),
        str(image_path),
    )
    config_path = tmp_path / "settings.yaml"
    config_path.write_text(yaml.safe_dump(SMALL_CONFIG))

    cli = _load_cli()
    code = cli.main([
        "--image", str(image_path),
        "--out", str(tmp_path / "out.mlc"),
        "--config", str(config_path),
        "--fields-limit", "2",
        "--initial-factor", "50",
        "--increment", "50",
    ])

    assert code == 1
    assert not (tmp_path / "out.mlc").exists()


def test_cli_reports_unreadable_image(tmp_path):
    image_path = tmp_path / "portrait.png"
    image_path.write_text("not an image")

    cli = _load_cli()
    code = cli.main(["--image", str(image_path), "--out", str(tmp_path / "out.mlc")])

    assert code == 1
    assert not (tmp_path / "out.mlc").exists()
