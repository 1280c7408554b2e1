"""Registry of body orientation models.

The registry is an explicit object owned by the caller. It is filled
once (from a YAML coefficient file and/or programmatically), frozen, and
then only queried::

    registry = IAUPoleRegistry.from_yaml(default_data_path()).freeze()
    mars = registry.get("Mars")

Bodies without registered coefficients get a :class:`GCRFAlignedPole`.

Author: Mehmet Gümüş (github.com/SpaceEngineerSS)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Union

import numpy as np
import yaml

from orientation.iau_pole import (
    CosineTerm,
    GCRFAlignedPole,
    IAUPoleCoefficients,
    IAUPoleCoefficients1D,
    IAUPoleFunction,
    IAUPoleFunctionType,
    IAUTimeDependency,
    PolynomialTerm,
    RegisteredIAUPole,
    SineTerm,
    UserIAUPole,
)

logger = logging.getLogger(__name__)

PoleModel = Union[UserIAUPole, GCRFAlignedPole]

_ANGLES = ("alpha0", "delta0", "w")


def default_data_path() -> Path:
    """Path of the bundled IAU 2009 coefficient file."""
    return Path(__file__).resolve().parent / "data" / "iau_2009.yaml"


class IAUPoleRegistry:
    """Mapping body name → orientation model with a build/freeze lifecycle.

    Names are matched case-insensitively.
    """

    def __init__(self) -> None:
        self._models: dict[str, PoleModel] = {}
        self._names: dict[str, str] = {}
        self._frozen = False

    # -------------------------------------------------------------------
    # Build
    # -------------------------------------------------------------------

    def register(self, body: str, model: PoleModel) -> IAUPoleRegistry:
        if self._frozen:
            raise RuntimeError("Cannot register a pole model in a frozen registry.")
        key = body.lower()
        if key in self._models:
            logger.warning("Replacing pole model of %s", body)
        self._models[key] = model
        self._names[key] = body
        return self

    def freeze(self) -> IAUPoleRegistry:
        self._frozen = True
        logger.info("Pole registry frozen with %d bodies: %s", len(self._models), ", ".join(self.bodies))
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    @classmethod
    def from_yaml(cls, path: str | Path) -> IAUPoleRegistry:
        """Build an unfrozen registry from a coefficient file.

        Raises
        ------
        FileNotFoundError
            If the file does not exist.
        ValueError
            If the coefficient data is malformed.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Pole coefficient file not found: {path}")

        with open(path, "r", encoding="utf-8") as f:
            raw: Any = yaml.safe_load(f)

        logger.info("Loading pole coefficients from: %s", path)

        if not isinstance(raw, dict) or not isinstance(raw.get("bodies"), dict):
            raise ValueError(f"Pole coefficient file must define a 'bodies' mapping: {path}")
        origin = str(raw.get("origin", path.stem))

        registry = cls()
        for body, angles in raw["bodies"].items():
            try:
                coefficients = _parse_body(angles)
            except (KeyError, TypeError, ValueError) as e:
                raise ValueError(f"Invalid pole coefficients for {body} in {path}: {e}") from e
            registry.register(str(body), RegisteredIAUPole(coefficients, origin))
        return registry

    @classmethod
    def default(cls) -> IAUPoleRegistry:
        """Frozen registry of the bundled IAU 2009 models."""
        return cls.from_yaml(default_data_path()).freeze()

    # -------------------------------------------------------------------
    # Query
    # -------------------------------------------------------------------

    def get(self, body: str) -> PoleModel:
        if not self._frozen:
            raise RuntimeError("Pole registry must be frozen before it is queried.")
        model = self._models.get(body.lower())
        if model is None:
            logger.debug("No pole model for %s, using GCRF-aligned orientation", body)
            return GCRFAlignedPole()
        return model

    def __contains__(self, body: str) -> bool:
        return body.lower() in self._models

    @property
    def bodies(self) -> list[str]:
        return list(self._names.values())


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _parse_body(angles: dict[str, Any]) -> IAUPoleCoefficients:
    if not isinstance(angles, dict):
        raise TypeError("body entry must be a mapping of angles")
    unknown = set(angles) - set(_ANGLES)
    if unknown:
        raise ValueError(f"unknown angles {sorted(unknown)}")
    series = {name: IAUPoleCoefficients1D([_parse_term(t) for t in angles.get(name) or []]) for name in _ANGLES}
    return IAUPoleCoefficients(series["alpha0"], series["delta0"], series["w"])


def _parse_term(term: dict[str, Any]) -> IAUPoleFunction:
    """Build a term; degrees in the file, radians in the model."""
    function_type = IAUPoleFunctionType(term["type"])
    time_dependency = IAUTimeDependency(term["time"])
    if "polynomial" in term:
        function = PolynomialTerm(_radians(term["polynomial"]))
    elif "sine" in term:
        function = SineTerm(float(np.deg2rad(float(term["sine"]))), _radians(term["phase"]))
    elif "cosine" in term:
        function = CosineTerm(float(np.deg2rad(float(term["cosine"]))), _radians(term["phase"]))
    else:
        raise ValueError(f"term needs 'polynomial', 'sine' or 'cosine': {term}")
    return IAUPoleFunction(function_type, function, time_dependency)


def _radians(values: Any) -> list[float]:
    if not isinstance(values, list) or not values:
        raise ValueError(f"expected a non-empty list of coefficients, got {values!r}")
    return [float(v) for v in np.deg2rad(np.asarray(values, dtype=np.float64))]
