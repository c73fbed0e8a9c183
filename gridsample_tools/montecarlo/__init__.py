"""
# Monte Carlo Sampling

This module provides the building blocks of the Monte Carlo sampler: its
configuration, the data exchanged with the external sampling tool, the `.mat`
file readers and writers, and helpers to draw and analyze samples.

## Components

- `MontecarloSamplerConfig`: Configuration of the sampler
- `MontecarloSamplerParameters`: Parameters of a sampling request
- `TimeHorizon`: Forecasting interval of a forecast errors analysis
- `SamplerState`: Lifecycle states of a sampler
- `SamplingNetworkData`, `SampledData`, `SampleData`: Exchanged data
- `draw_samples`, `analyze_samples`: Sampling loop and batch statistics

## Example Usage

```python
from gridsample_tools import MontecarloSampler
from gridsample_tools.forecast import FileForecastErrorsDataStorage
from gridsample_tools.montecarlo import (
    MontecarloSamplerConfig, MontecarloSamplerParameters, TimeHorizon, draw_samples
)
from gridsample_tools.utils.process import SubprocessRunner

sampler = MontecarloSampler(
    network,
    SubprocessRunner(),
    FileForecastErrorsDataStorage("/data/fea"),
    MontecarloSamplerConfig.load()
)
sampler.init(MontecarloSamplerParameters(TimeHorizon.DACF, "fea1", n_samples=100))

# Write 100 samples into the network, running a load flow after each one
draw_samples(sampler, 100, callback=run_loadflow)
```
"""

from .config import *
from .data import *
from .matfile import *
from .sim import *
