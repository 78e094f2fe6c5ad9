from .errors import SequencingError, ConfigurationError, LimitExceededError
from .sequencer import ScheduleEntry, LeafSchedule, PairSequence, sequence_leaf_pair, sequence_intensity_grid
from .trajectory import TrajectoryPoint, Trajectory, build_pair_trajectory, build_trajectories
from .field_assembly import Field, assemble_field, pad_trajectory
from .compression import FitResult, fit_compression, scale_intensity_grid
from .config import ConversionConfig, FitterSettings, MLCGeometry, PatientHeader, DigitizerSettings, load_config
from . import digitizer
from . import mlc_writer
from . import pipeline

__version__ = "0.1.0"

__all__ = [
    'SequencingError', 'ConfigurationError', 'LimitExceededError',
    'ScheduleEntry', 'LeafSchedule', 'PairSequence', 'sequence_leaf_pair', 'sequence_intensity_grid',
    'TrajectoryPoint', 'Trajectory', 'build_pair_trajectory', 'build_trajectories',
    'Field', 'assemble_field', 'pad_trajectory',
    'FitResult', 'fit_compression', 'scale_intensity_grid',
    'ConversionConfig', 'FitterSettings', 'MLCGeometry', 'PatientHeader', 'DigitizerSettings', 'load_config',
    'digitizer', 'mlc_writer', 'pipeline'
]
