"""
# Forecast Errors Data

This module provides access to the stored results of forecast errors analyses,
the statistical datasets the Monte Carlo sampler draws its samples from.

## Components

- `ForecastErrorsAnalyzerParameters`: Metadata of a forecast errors analysis
- `ForecastErrorsDataStorage`: Abstract storage interface
- `FileForecastErrorsDataStorage`: Directory-backed storage
"""

from .storage import *
