"""
Data Sources Package
Pure async API clients for geocoding, Overpass and metric collaborators
"""

from . import nominatim_api
from . import overpass_api
from . import metrics_api

__all__ = ['nominatim_api', 'overpass_api', 'metrics_api']
