"""FacetBody — Data Ingestion Package.

Body mesh generation, triangle-set persistence and ephemeris providers
for the faceted body shape engine.

Author: Mehmet Gümüş (github.com/SpaceEngineerSS)
"""
