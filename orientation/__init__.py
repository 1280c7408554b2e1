"""FacetBody — Orientation Package.

IAU pole models (polynomial and harmonic series), the body orientation
registry, rotation helpers and the reference frame tree.

Author: Mehmet Gümüş (github.com/SpaceEngineerSS)
"""
