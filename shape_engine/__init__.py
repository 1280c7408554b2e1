"""FacetBody — Shape Engine Package.

Triangle mesh model, BVH line intersection, faceted body shape queries
(intersection, visibility, eclipse, surface data), companion ellipsoids
and streaming statistics.

Author: Mehmet Gümüş (github.com/SpaceEngineerSS)
"""
