"""IAU pole and prime-meridian models from coefficient series.

A body orientation is defined by three angles, each a sum of terms in
elapsed days ``d`` or Julian centuries ``T`` since J2000.0 (TDB)::

    α0(t), δ0(t)   right ascension / declination of the north pole
    W(t)           prime meridian angle

Terms are polynomials, ``A sin(P(x))`` or ``A cos(P(x))`` with a
polynomial phase ``P``; all coefficients are in radians. Every term is
tagged with its kind (constant, secular, harmonic) so that a model-type
selector can restrict the evaluation to the constant part, the mean
(constant + secular) part or the full (true) series.

Author: Mehmet Gümüş (github.com/SpaceEngineerSS)

References
----------
- Archinal, B.A. et al. (2011). "Report of the IAU Working Group on
  Cartographic Coordinates and Rotational Elements: 2009."
  Celestial Mechanics and Dynamical Astronomy, 109, 101-135.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Union

import numpy as np

from orientation.rotation import AngularCoordinates, _Rx, _Rz
from orientation.timescale import (
    DAYS_PER_CENTURY,
    SECONDS_PER_CENTURY,
    SECONDS_PER_DAY,
    seconds_since_j2000,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class IAUPoleFunctionType(Enum):
    """Kind of a series term."""

    CONSTANT = "constant"
    SECULAR = "secular"
    HARMONICS = "harmonics"


class IAUTimeDependency(Enum):
    """Time variable of a series term."""

    DAYS = "days"
    CENTURIES = "centuries"


class IAUPoleModelType(Enum):
    """Subset of terms taken into account when evaluating a series."""

    CONSTANT = "constant"
    MEAN = "mean"
    TRUE = "true"

    def accepts(self, function_type: IAUPoleFunctionType) -> bool:
        if self is IAUPoleModelType.TRUE:
            return True
        if self is IAUPoleModelType.MEAN:
            return function_type is not IAUPoleFunctionType.HARMONICS
        return function_type is IAUPoleFunctionType.CONSTANT


class OrientationType(Enum):
    """Transformations exposed by a pole model."""

    ICRF_TO_INERTIAL = "icrf_to_inertial"
    INERTIAL_TO_ROTATING = "inertial_to_rotating"
    ICRF_TO_ROTATING = "icrf_to_rotating"


# ---------------------------------------------------------------------------
# Term functions
# ---------------------------------------------------------------------------


class PolynomialTerm:
    """``c0 + c1 x + c2 x² + ...``"""

    def __init__(self, coefficients: Sequence[float]) -> None:
        if len(coefficients) == 0:
            raise ValueError("Polynomial term needs at least one coefficient")
        self.coefficients = tuple(float(c) for c in coefficients)

    def value(self, x: float) -> float:
        result = 0.0
        for c in reversed(self.coefficients):
            result = result * x + c
        return result

    def derivative(self, x: float) -> float:
        result = 0.0
        for k in range(len(self.coefficients) - 1, 0, -1):
            result = result * x + k * self.coefficients[k]
        return result

    def __repr__(self) -> str:
        return f"PolynomialTerm({list(self.coefficients)})"


class SineTerm:
    """``amplitude · sin(P(x))``"""

    def __init__(self, amplitude: float, phase_coefficients: Sequence[float]) -> None:
        self.amplitude = float(amplitude)
        self.phase = PolynomialTerm(phase_coefficients)

    def value(self, x: float) -> float:
        return self.amplitude * np.sin(self.phase.value(x))

    def derivative(self, x: float) -> float:
        return self.amplitude * np.cos(self.phase.value(x)) * self.phase.derivative(x)

    def __repr__(self) -> str:
        return f"SineTerm({self.amplitude!r}, {list(self.phase.coefficients)})"


class CosineTerm:
    """``amplitude · cos(P(x))``"""

    def __init__(self, amplitude: float, phase_coefficients: Sequence[float]) -> None:
        self.amplitude = float(amplitude)
        self.phase = PolynomialTerm(phase_coefficients)

    def value(self, x: float) -> float:
        return self.amplitude * np.cos(self.phase.value(x))

    def derivative(self, x: float) -> float:
        return -self.amplitude * np.sin(self.phase.value(x)) * self.phase.derivative(x)

    def __repr__(self) -> str:
        return f"CosineTerm({self.amplitude!r}, {list(self.phase.coefficients)})"


TermFunction = Union[PolynomialTerm, SineTerm, CosineTerm]


# ---------------------------------------------------------------------------
# Series
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class IAUPoleFunction:
    """One term of an orientation angle series.

    Attributes
    ----------
    function_type : IAUPoleFunctionType
        Kind of term, used by the model-type selector.
    function : PolynomialTerm, SineTerm or CosineTerm
        Term in radians, as a function of the time variable.
    time_dependency : IAUTimeDependency
        Time variable (days or centuries since J2000.0).
    """

    function_type: IAUPoleFunctionType
    function: TermFunction
    time_dependency: IAUTimeDependency

    def _time_variable(self, date) -> float:
        days = seconds_since_j2000(date) / SECONDS_PER_DAY
        if self.time_dependency is IAUTimeDependency.DAYS:
            return days
        return days / DAYS_PER_CENTURY

    def value(self, date) -> float:
        """Term value [rad]."""
        return float(self.function.value(self._time_variable(date)))

    def derivative(self, date) -> float:
        """Term time derivative [rad/s]."""
        d = float(self.function.derivative(self._time_variable(date)))
        if self.time_dependency is IAUTimeDependency.DAYS:
            return d / SECONDS_PER_DAY
        return d / SECONDS_PER_CENTURY


class IAUPoleCoefficients1D:
    """Ordered sum of terms defining one angle.

    ``None`` or an empty list defines an angle identically zero.
    """

    def __init__(self, functions: Optional[Sequence[IAUPoleFunction]] = None) -> None:
        self._functions: tuple[IAUPoleFunction, ...] = tuple(functions) if functions else ()

    @property
    def functions(self) -> tuple[IAUPoleFunction, ...]:
        return self._functions

    def value(self, date, model_type: IAUPoleModelType = IAUPoleModelType.TRUE) -> float:
        result = 0.0
        for f in self._functions:
            if model_type.accepts(f.function_type):
                result += f.value(date)
        return result

    def derivative(self, date, model_type: IAUPoleModelType = IAUPoleModelType.TRUE) -> float:
        result = 0.0
        for f in self._functions:
            if model_type.accepts(f.function_type):
                result += f.derivative(date)
        return result

    def __len__(self) -> int:
        return len(self._functions)


@dataclass(frozen=True)
class IAUPoleCoefficients:
    """The (α0, δ0, W) series of a body; ``None`` series evaluate to zero."""

    alpha0: Optional[IAUPoleCoefficients1D] = None
    delta0: Optional[IAUPoleCoefficients1D] = None
    w: Optional[IAUPoleCoefficients1D] = None

    def __post_init__(self) -> None:
        for name in ("alpha0", "delta0", "w"):
            if getattr(self, name) is None:
                object.__setattr__(self, name, IAUPoleCoefficients1D(None))


# ---------------------------------------------------------------------------
# Orientation models
# ---------------------------------------------------------------------------


class UserIAUPole:
    """Body orientation evaluated from user-supplied coefficients.

    Parameters
    ----------
    coefficients : IAUPoleCoefficients, optional
        Series of the body; ``None`` yields a zero orientation.
    """

    def __init__(self, coefficients: Optional[IAUPoleCoefficients]) -> None:
        self._coefficients = coefficients if coefficients is not None else IAUPoleCoefficients()

    @property
    def coefficients(self) -> IAUPoleCoefficients:
        return self._coefficients

    def _angles(self, date, model_type: IAUPoleModelType) -> tuple[float, float]:
        c = self._coefficients
        return c.alpha0.value(date, model_type), c.delta0.value(date, model_type)

    def get_pole(self, date, model_type: IAUPoleModelType = IAUPoleModelType.TRUE) -> np.ndarray:
        """Unit pole direction in ICRF."""
        alpha, delta = self._angles(date, model_type)
        cd = np.cos(delta)
        return np.array([cd * np.cos(alpha), cd * np.sin(alpha), np.sin(delta)])

    def get_pole_derivative(self, date, model_type: IAUPoleModelType = IAUPoleModelType.TRUE) -> np.ndarray:
        """Time derivative of the pole direction [1/s]."""
        c = self._coefficients
        alpha, delta = self._angles(date, model_type)
        alpha_dot = c.alpha0.derivative(date, model_type)
        delta_dot = c.delta0.derivative(date, model_type)
        ca, sa = np.cos(alpha), np.sin(alpha)
        cd, sd = np.cos(delta), np.sin(delta)
        return np.array([
            -sd * delta_dot * ca - cd * sa * alpha_dot,
            -sd * delta_dot * sa + cd * ca * alpha_dot,
            cd * delta_dot,
        ])

    def get_prime_meridian_angle(self, date, model_type: IAUPoleModelType = IAUPoleModelType.TRUE) -> float:
        return self._coefficients.w.value(date, model_type)

    def get_prime_meridian_angle_derivative(
        self, date, model_type: IAUPoleModelType = IAUPoleModelType.TRUE
    ) -> float:
        return self._coefficients.w.derivative(date, model_type)

    def get_angular_coordinates(
        self,
        date,
        orientation_type: OrientationType = OrientationType.ICRF_TO_ROTATING,
        model_type: IAUPoleModelType = IAUPoleModelType.TRUE,
    ) -> AngularCoordinates:
        """Orientation of the body frames.

        Parameters
        ----------
        date : float, datetime or skyfield Time
            Evaluation date.
        orientation_type : OrientationType
            ``ICRF_TO_INERTIAL``: ICRF → frame with z along the pole and
            x along the node of the body equator on the ICRF equator.
            ``INERTIAL_TO_ROTATING``: rotation by W about the pole.
            ``ICRF_TO_ROTATING``: composition of both.
        model_type : IAUPoleModelType
            Terms taken into account.

        Returns
        -------
        AngularCoordinates
            Rotation and rotation rate of the child frame.
        """
        if orientation_type is OrientationType.ICRF_TO_INERTIAL:
            return self._icrf_to_inertial(date, model_type)
        if orientation_type is OrientationType.INERTIAL_TO_ROTATING:
            return self._inertial_to_rotating(date, model_type)
        return self._inertial_to_rotating(date, model_type).compose(self._icrf_to_inertial(date, model_type))

    def _icrf_to_inertial(self, date, model_type: IAUPoleModelType) -> AngularCoordinates:
        c = self._coefficients
        alpha, delta = self._angles(date, model_type)
        # R1(π/2 - δ) · R3(π/2 + α)
        node = AngularCoordinates(_Rz(np.pi / 2.0 + alpha), np.array([0.0, 0.0, c.alpha0.derivative(date, model_type)]))
        tilt = AngularCoordinates(_Rx(np.pi / 2.0 - delta), np.array([-c.delta0.derivative(date, model_type), 0.0, 0.0]))
        return tilt.compose(node)

    def _inertial_to_rotating(self, date, model_type: IAUPoleModelType) -> AngularCoordinates:
        w = self.get_prime_meridian_angle(date, model_type)
        w_dot = self.get_prime_meridian_angle_derivative(date, model_type)
        return AngularCoordinates(_Rz(w), np.array([0.0, 0.0, w_dot]))

    def __str__(self) -> str:
        return "User-defined coefficients"


class RegisteredIAUPole(UserIAUPole):
    """Pole model loaded from a coefficient data file; prints its origin."""

    def __init__(self, coefficients: IAUPoleCoefficients, origin: str) -> None:
        super().__init__(coefficients)
        self._origin = origin

    def __str__(self) -> str:
        return self._origin


class GCRFAlignedPole:
    """Orientation aligned with GCRF: pole +K and W = 0 at all dates."""

    def get_pole(self, date, model_type: IAUPoleModelType = IAUPoleModelType.TRUE) -> np.ndarray:
        return np.array([0.0, 0.0, 1.0])

    def get_pole_derivative(self, date, model_type: IAUPoleModelType = IAUPoleModelType.TRUE) -> np.ndarray:
        return np.zeros(3)

    def get_prime_meridian_angle(self, date, model_type: IAUPoleModelType = IAUPoleModelType.TRUE) -> float:
        return 0.0

    def get_prime_meridian_angle_derivative(
        self, date, model_type: IAUPoleModelType = IAUPoleModelType.TRUE
    ) -> float:
        return 0.0

    def get_angular_coordinates(
        self,
        date,
        orientation_type: OrientationType = OrientationType.ICRF_TO_ROTATING,
        model_type: IAUPoleModelType = IAUPoleModelType.TRUE,
    ) -> AngularCoordinates:
        return AngularCoordinates.identity()

    def __str__(self) -> str:
        return "GCRF-aligned"
