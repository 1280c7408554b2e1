"""FacetBody — Analysis Package.

Body shape reports and result persistence.

Author: Mehmet Gümüş (github.com/SpaceEngineerSS)
"""
