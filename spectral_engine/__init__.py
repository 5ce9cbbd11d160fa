from spectral_engine.config import (
    EngineConfig,
    Extremum,
    Neighborhood,
    PreprocessKind,
    Symmetrization,
    WeightKind,
    WeightStrategy,
    load_config,
)
from spectral_engine.exceptions import ComputationError, EngineError, ValidationError
from spectral_engine.embedding_algorithms import EmbeddingResult, compute_embedding
from spectral_engine.preprocessing import TransformInfo
from spectral_engine.utils import configure_logging
from spectral_engine import methods, metrics
from spectral_engine.methods import enet, lasso, lpp, lscore, odp, slpe

__version__ = "0.1.0"
