"""Exceptions raised by the faceted body shape engine.

Author: Mehmet Gümüş (github.com/SpaceEngineerSS)
"""

from __future__ import annotations


class FacetBodyError(RuntimeError):
    """Base class for body shape query failures."""


class NoIntersectionError(FacetBodyError):
    """A line of sight that must hit the body misses every triangle."""


class ConvergenceError(FacetBodyError):
    """An iterative search exhausted its step budget."""
