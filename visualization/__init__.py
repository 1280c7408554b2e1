"""FacetBody — Visualization Package.

Matplotlib figures of visibility results and altitude statistics.

Author: Mehmet Gümüş (github.com/SpaceEngineerSS)
"""
