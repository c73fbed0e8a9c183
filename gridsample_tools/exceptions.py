"""
# Exceptions

Errors raised by the gridsample_tools package.

## Hierarchy

- `GridSampleError`: base class for every error raised by the package
  - `ConfigurationError`: malformed or missing configuration values
  - `SamplerError`: failures of the Monte Carlo sampler
    - `SamplerNotReadyError`: preconditions of `init` are not met
    - `SamplerStateError`: an operation was called outside its lifecycle state
    - `SamplesExhaustedError`: every requested sample has been drawn
    - `SamplingResultsError`: the external sampler results could not be read
"""


class GridSampleError(Exception):
    """Base class for gridsample_tools errors."""


class ConfigurationError(GridSampleError):
    """Raised when a configuration value is missing or cannot be coerced."""


class SamplerError(GridSampleError):
    """Base class for Monte Carlo sampler failures."""


class SamplerNotReadyError(SamplerError):
    """Raised by `init` when the forecast errors data or sample count is invalid."""


class SamplerStateError(SamplerError):
    """Raised when the sampler is used outside a valid lifecycle transition."""


class SamplesExhaustedError(SamplerError):
    """Raised when `sample` is called after the last requested sample was drawn."""


class SamplingResultsError(SamplerError):
    """Raised when the results of the external sampler cannot be parsed."""
