"""
Conversion settings for PortraitDMLC.

Settings are grouped in dataclasses with defaults for a Varian 120-leaf
MLC and a 42 x 140 digitised portrait. A YAML or JSON file can override
any subset:

    fitter:
      fields_limit: 499
      initial_factor: 100
      increment_factor: 1
    geometry:
      model: Varian 120M
      travel_distance_cm: 14.0
    header:
      patient_id: PHANTOM01
"""

import json
import warnings
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .errors import ConfigurationError


@dataclass
class FitterSettings:
    """Compression factor search parameters."""

    fields_limit: int = 499          # device max control points per field
    initial_factor: float = 100.0
    increment_factor: float = 1.0
    min_factor: Optional[float] = None
    max_factor: Optional[float] = None
    processes: int = 1               # row sequencing workers

    def validate(self) -> None:
        if int(self.fields_limit) != self.fields_limit or self.fields_limit <= 0:
            raise ConfigurationError(f"fields_limit must be a positive integer, got {self.fields_limit}")
        if self.initial_factor <= 0:
            raise ConfigurationError(f"initial_factor must be positive, got {self.initial_factor}")
        if self.increment_factor <= 0:
            raise ConfigurationError(f"increment_factor must be positive, got {self.increment_factor}")
        if self.min_factor is not None and self.min_factor <= 0:
            raise ConfigurationError(f"min_factor must be positive, got {self.min_factor}")
        if self.max_factor is not None and self.max_factor < self.initial_factor:
            raise ConfigurationError(
                f"max_factor ({self.max_factor}) must be >= initial_factor ({self.initial_factor})"
            )
        if self.processes < 1:
            raise ConfigurationError(f"processes must be >= 1, got {self.processes}")


@dataclass
class MLCGeometry:
    """MLC geometry used to convert grid columns to leaf positions.

    Attributes
    ----------
    model : str
        Device model written to the MLC file header
    n_leaf_pairs : int
        Leaf pairs per bank on the device
    first_leaf : int, optional
        1-based leaf number of grid row 0. None centres the rows.
    travel_distance_cm : float
        Physical leaf travel covered by the grid columns
    column_count : int
        Number of grid columns spanning travel_distance_cm
    bank_a_rest_cm, bank_b_rest_cm : float
        Bank A/B leaf values at column 0
    tolerance_cm : float
        Leaf position tolerance written to the header
    """

    model: str = "Varian 120M"
    n_leaf_pairs: int = 60
    first_leaf: Optional[int] = None
    travel_distance_cm: float = 14.0
    column_count: int = 140
    bank_a_rest_cm: float = -7.0
    bank_b_rest_cm: float = 7.0
    tolerance_cm: float = 0.5

    @property
    def scale_cm(self) -> float:
        """Physical length of one grid column."""
        return self.travel_distance_cm / self.column_count

    def first_leaf_for(self, n_rows: int) -> int:
        """1-based leaf number that receives grid row 0."""
        if n_rows > self.n_leaf_pairs:
            raise ConfigurationError(
                f"Field has {n_rows} leaf pairs but {self.model} has only {self.n_leaf_pairs}"
            )
        if self.first_leaf is None:
            return (self.n_leaf_pairs - n_rows) // 2 + 1
        if self.first_leaf < 1 or self.first_leaf + n_rows - 1 > self.n_leaf_pairs:
            raise ConfigurationError(
                f"first_leaf={self.first_leaf} cannot hold {n_rows} rows on "
                f"{self.n_leaf_pairs} leaf pairs"
            )
        return self.first_leaf

    def validate(self) -> None:
        if self.n_leaf_pairs <= 0:
            raise ConfigurationError(f"n_leaf_pairs must be positive, got {self.n_leaf_pairs}")
        if self.column_count <= 0:
            raise ConfigurationError(f"column_count must be positive, got {self.column_count}")
        if self.travel_distance_cm <= 0:
            raise ConfigurationError(
                f"travel_distance_cm must be positive, got {self.travel_distance_cm}"
            )
        if self.tolerance_cm < 0:
            raise ConfigurationError(f"tolerance_cm must be >= 0, got {self.tolerance_cm}")


@dataclass
class PatientHeader:
    """Identity fields written to the MLC file header."""

    last_name: str = ""
    first_name: str = ""
    patient_id: str = ""


@dataclass
class DigitizerSettings:
    """Target size of the digitised intensity grid (rows = leaf pairs)."""

    target_height: int = 42
    target_width: int = 140

    def validate(self) -> None:
        if self.target_height <= 0 or self.target_width <= 0:
            raise ConfigurationError(
                f"Digitizer target size must be positive, got "
                f"{self.target_height} x {self.target_width}"
            )


@dataclass
class ConversionConfig:
    """Complete settings for one image -> MLC file conversion."""

    fitter: FitterSettings = field(default_factory=FitterSettings)
    geometry: MLCGeometry = field(default_factory=MLCGeometry)
    header: PatientHeader = field(default_factory=PatientHeader)
    digitizer: DigitizerSettings = field(default_factory=DigitizerSettings)

    def validate(self) -> None:
        self.fitter.validate()
        self.geometry.validate()
        self.digitizer.validate()
        if self.digitizer.target_height > self.geometry.n_leaf_pairs:
            raise ConfigurationError(
                f"Digitizer height {self.digitizer.target_height} exceeds "
                f"{self.geometry.n_leaf_pairs} leaf pairs of {self.geometry.model}"
            )
        if self.digitizer.target_width != self.geometry.column_count:
            warnings.warn(
                f"Digitizer width {self.digitizer.target_width} != geometry column_count "
                f"{self.geometry.column_count}; leaf positions are scaled by column_count"
            )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ConversionConfig":
        data = dict(data or {})
        sections = {f.name: f for f in fields(cls)}
        unknown = set(data) - set(sections)
        if unknown:
            raise ConfigurationError(f"Unknown config section(s): {', '.join(sorted(unknown))}")

        kwargs = {}
        for name, section_field in sections.items():
            section_cls = section_field.default_factory
            values = data.get(name) or {}
            if not isinstance(values, dict):
                raise ConfigurationError(f"Config section '{name}' must be a mapping")
            allowed = {f.name for f in fields(section_cls)}
            bad = set(values) - allowed
            if bad:
                raise ConfigurationError(
                    f"Unknown key(s) in '{name}': {', '.join(sorted(bad))}"
                )
            kwargs[name] = section_cls(**values)

        config = cls(**kwargs)
        config.validate()
        return config


def load_config(path) -> ConversionConfig:
    """
    Load a ConversionConfig from a YAML (.yaml/.yml) or JSON file.

    Raises
    ------
    ConfigurationError
        If the file has unknown sections/keys or invalid values
    """
    path = Path(path)
    with open(path, "r", encoding="utf-8") as f:
        if path.suffix.lower() in {".yaml", ".yml"}:
            data = yaml.safe_load(f)
        else:
            data = json.load(f)
    if data is not None and not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")
    return ConversionConfig.from_dict(data)


def save_config(config: ConversionConfig, path) -> None:
    """Write a ConversionConfig as YAML or JSON, chosen by extension."""
    path = Path(path)
    data = config.to_dict()
    if path.suffix.lower() in {".yaml", ".yml"}:
        path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
    else:
        path.write_text(json.dumps(data, indent=2), encoding="utf-8")
