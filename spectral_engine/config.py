"""
config.py
---------
Typed configuration for the projection engine.

Strategies are selected through enumerated tags rather than free strings;
each tag is bound to a builder in the module that implements it. Configs
can be written by hand or loaded from the JSON layout used by experiment
runs, e.g.

    {
        "ndim": 2,
        "preprocess": "center",
        "neighborhood": {"type": "knn", "k": 5},
        "symmetric": "union",
        "weight": {"type": "heat", "t": 1.0},
        "extremum": "smallest"
    }
"""

import json
import logging
import math
import numbers
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Union

from spectral_engine.exceptions import ValidationError

logger = logging.getLogger(__name__)


class PreprocessKind(str, Enum):
    NONE = "none"
    CENTER = "center"
    SCALE = "scale"
    CENTER_SCALE = "center+scale"
    DECORRELATE = "decorrelate"
    WHITEN = "whiten"


class NeighborhoodKind(str, Enum):
    KNN = "knn"
    ENN = "enn"
    PROPORTION = "proportion"


class Symmetrization(str, Enum):
    UNION = "union"
    INTERSECT = "intersect"
    ASYMMETRIC = "asymmetric"


class WeightKind(str, Enum):
    HEAT = "heat"
    BINARY = "binary"
    CLASS_BLOCK = "class_block"
    DISCRIMINANT_SPLIT = "discriminant_split"


class Extremum(str, Enum):
    SMALLEST = "smallest"
    LARGEST = "largest"


# Spellings accepted from older configs.
_ALIASES = {
    "null": "none",
    "cscale": "center+scale",
    "classblock": "class_block",
    "discriminantsplit": "discriminant_split",
    "odp": "discriminant_split",
}


def _parse_enum(enum_cls, value, what: str):
    if isinstance(value, enum_cls):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"{what} must be a string, got {value!r}.", stage="validation")
    key = value.strip().lower()
    key = _ALIASES.get(key, key)
    try:
        return enum_cls(key)
    except ValueError:
        valid = [m.value for m in enum_cls]
        raise ValidationError(f"Unknown {what} '{value}'. Available: {valid}.", stage="validation")


def _is_real(x) -> bool:
    return isinstance(x, numbers.Real) and not isinstance(x, bool) and not math.isnan(x)


###############################################################################
# Neighborhood rule
###############################################################################

@dataclass(frozen=True)
class Neighborhood:
    """Connectivity rule: k nearest, fixed radius, or a proportion of n."""
    kind: NeighborhoodKind
    value: float

    def __post_init__(self):
        v = self.value
        if self.kind is NeighborhoodKind.KNN:
            if not _is_real(v) or not math.isfinite(v) or int(v) != v or v < 1:
                raise ValidationError(f"knn requires a positive integer k, got {v!r}.", stage="validation")
            object.__setattr__(self, "value", int(v))
        elif self.kind is NeighborhoodKind.ENN:
            if not _is_real(v) or not math.isfinite(v) or v <= 0:
                raise ValidationError(f"enn radius must be finite and > 0, got {v!r}.", stage="validation")
        elif self.kind is NeighborhoodKind.PROPORTION:
            if not _is_real(v) or not (0 < v <= 1):
                raise ValidationError(f"proportion ratio must lie in (0, 1], got {v!r}.", stage="validation")

    @classmethod
    def knn(cls, k: int) -> "Neighborhood":
        return cls(NeighborhoodKind.KNN, k)

    @classmethod
    def enn(cls, radius: float) -> "Neighborhood":
        return cls(NeighborhoodKind.ENN, radius)

    @classmethod
    def proportion(cls, ratio: float) -> "Neighborhood":
        return cls(NeighborhoodKind.PROPORTION, ratio)

    @classmethod
    def parse(cls, spec: Union["Neighborhood", Dict[str, Any], Sequence]) -> "Neighborhood":
        """Accepts a Neighborhood, {"type": "knn", "k": 5} or ("knn", 5)."""
        if isinstance(spec, Neighborhood):
            return spec
        if isinstance(spec, dict):
            kind = _parse_enum(NeighborhoodKind, spec.get("type"), "neighborhood type")
            key = {"knn": "k", "enn": "radius", "proportion": "ratio"}[kind.value]
            if key not in spec:
                raise ValidationError(f"neighborhood '{kind.value}' requires '{key}'.", stage="validation")
            return cls(kind, spec[key])
        if isinstance(spec, (list, tuple)) and len(spec) == 2:
            kind = _parse_enum(NeighborhoodKind, spec[0], "neighborhood type")
            return cls(kind, spec[1])
        raise ValidationError(f"Cannot interpret neighborhood {spec!r}.", stage="validation")


###############################################################################
# Weight strategy
###############################################################################

@dataclass(frozen=True)
class WeightStrategy:
    """
    Weight formula applied to the neighborhood graph.

    t     : heat-kernel bandwidth, finite and > 0.
    alpha : local/non-local balance for discriminant split, in [0, 1].
    beta  : affinity scale for discriminant split, finite and > 0.
    """
    kind: WeightKind
    t: Optional[float] = None
    alpha: Optional[float] = None
    beta: Optional[float] = None

    def __post_init__(self):
        if self.kind is WeightKind.HEAT:
            if not _is_real(self.t) or not math.isfinite(self.t) or self.t <= 0:
                raise ValidationError(
                    f"heat kernel bandwidth t must be finite and > 0, got {self.t!r}. "
                    "Use the binary strategy for an infinite bandwidth.", stage="validation")
        elif self.kind is WeightKind.DISCRIMINANT_SPLIT:
            if not _is_real(self.alpha) or not (0 <= self.alpha <= 1):
                raise ValidationError(f"alpha must lie in [0, 1], got {self.alpha!r}.", stage="validation")
            if not _is_real(self.beta) or not math.isfinite(self.beta) or self.beta <= 0:
                raise ValidationError(f"beta must be finite and > 0, got {self.beta!r}.", stage="validation")

    @classmethod
    def heat(cls, t: float = 1.0) -> "WeightStrategy":
        return cls(WeightKind.HEAT, t=t)

    @classmethod
    def binary(cls) -> "WeightStrategy":
        return cls(WeightKind.BINARY)

    @classmethod
    def class_block(cls) -> "WeightStrategy":
        return cls(WeightKind.CLASS_BLOCK)

    @classmethod
    def discriminant_split(cls, alpha: float = 0.5, beta: float = 10.0) -> "WeightStrategy":
        return cls(WeightKind.DISCRIMINANT_SPLIT, alpha=alpha, beta=beta)

    @property
    def requires_graph(self) -> bool:
        return self.kind is not WeightKind.CLASS_BLOCK

    @property
    def requires_labels(self) -> bool:
        return self.kind in (WeightKind.CLASS_BLOCK, WeightKind.DISCRIMINANT_SPLIT)

    @property
    def natural_extremum(self) -> Extremum:
        if self.kind is WeightKind.DISCRIMINANT_SPLIT:
            return Extremum.LARGEST
        return Extremum.SMALLEST

    @classmethod
    def parse(cls, spec: Union["WeightStrategy", Dict[str, Any], str]) -> "WeightStrategy":
        if isinstance(spec, WeightStrategy):
            return spec
        if isinstance(spec, str):
            spec = {"type": spec}
        if not isinstance(spec, dict):
            raise ValidationError(f"Cannot interpret weight strategy {spec!r}.", stage="validation")
        kind = _parse_enum(WeightKind, spec.get("type"), "weight strategy")
        if kind is WeightKind.HEAT:
            return cls.heat(spec.get("t", 1.0))
        if kind is WeightKind.DISCRIMINANT_SPLIT:
            return cls.discriminant_split(spec.get("alpha", 0.5), spec.get("beta", 10.0))
        return cls(kind)


###############################################################################
# Engine configuration
###############################################################################

@dataclass(frozen=True)
class EngineConfig:
    ndim: int = 2
    preprocess: PreprocessKind = PreprocessKind.CENTER
    neighborhood: Neighborhood = field(default_factory=lambda: Neighborhood.proportion(0.1))
    symmetric: Symmetrization = Symmetrization.UNION
    weight: WeightStrategy = field(default_factory=WeightStrategy.heat)
    extremum: Optional[Extremum] = None
    metric: str = "euclidean"
    pca_prefilter: bool = False
    rank_tol: float = 1e-9
    n_jobs: Optional[int] = None

    def __post_init__(self):
        if not isinstance(self.ndim, numbers.Integral) or isinstance(self.ndim, bool) or self.ndim < 1:
            raise ValidationError(f"ndim must be a positive integer, got {self.ndim!r}.", stage="validation")
        object.__setattr__(self, "ndim", int(self.ndim))
        object.__setattr__(self, "preprocess", _parse_enum(PreprocessKind, self.preprocess, "preprocess kind"))
        object.__setattr__(self, "symmetric", _parse_enum(Symmetrization, self.symmetric, "symmetrization"))
        object.__setattr__(self, "neighborhood", Neighborhood.parse(self.neighborhood))
        object.__setattr__(self, "weight", WeightStrategy.parse(self.weight))
        if self.extremum is not None:
            object.__setattr__(self, "extremum", _parse_enum(Extremum, self.extremum, "extremum"))
        if not _is_real(self.rank_tol) or not (0 < self.rank_tol < 1):
            raise ValidationError(f"rank_tol must lie in (0, 1), got {self.rank_tol!r}.", stage="validation")

    @property
    def resolved_extremum(self) -> Extremum:
        return self.extremum if self.extremum is not None else self.weight.natural_extremum

    @classmethod
    def from_dict(cls, cfg: Dict[str, Any]) -> "EngineConfig":
        validate_configuration(cfg)
        known = set(cls.__dataclass_fields__)
        unknown = set(cfg) - known
        if unknown:
            logger.warning(f"Ignoring unknown config keys: {sorted(unknown)}")
        return cls(**{k: v for k, v in cfg.items() if k in known})


def validate_configuration(config: Dict[str, Any]):
    needed = ["ndim"]
    for r in needed:
        if r not in config:
            raise ValidationError(f"Missing '{r}' in top-level config.", stage="validation")
    if "neighborhood" in config and not isinstance(config["neighborhood"], (dict, list, tuple, Neighborhood)):
        raise ValidationError("config['neighborhood'] must be a dictionary.", stage="validation")
    if "weight" in config and not isinstance(config["weight"], (dict, str, WeightStrategy)):
        raise ValidationError("config['weight'] must be a dictionary or a strategy name.", stage="validation")


def load_config(path: str) -> EngineConfig:
    with open(path, "r") as f:
        cfg = json.load(f)
    logger.info(f"Loaded engine config from {path}")
    return EngineConfig.from_dict(cfg)
