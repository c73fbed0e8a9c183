"""
# Gridsample Tools

A toolkit for perturbing power network models with Monte Carlo samples of
forecast errors, and for configuring the Eurostag export/import module:

- **Sampler Interface**: Abstract sampler and the Monte Carlo sampler backed by the external `mcla` tool
- **Monte Carlo Sampling**: Sampler configuration, exchanged data, sampling loop and batch statistics
- **Forecast Errors Data**: Storage of forecast errors analyses results
- **Configuration Management**: Platform configuration store and Eurostag export options
- **Network Access**: Protocol of the sampled network and an in-memory implementation
- **Utilities**: External process execution and results handling

## Main Components

- `Sampler`: Base class for network samplers
- `MontecarloSampler`: Monte Carlo sampler implementation
- `montecarlo`: Sampler configuration, data and helpers
- `forecast`: Forecast errors data storage
- `config`: Platform configuration and export options
- `network`: Network protocol and in-memory network
- `utils`: Process execution and results handling

## Example Usage

```python
from gridsample_tools import MontecarloSampler
from gridsample_tools.config import DdExportConfig, PlatformConfig
from gridsample_tools.forecast import FileForecastErrorsDataStorage
from gridsample_tools.montecarlo import (
    MontecarloSamplerConfig, MontecarloSamplerParameters, TimeHorizon, draw_samples
)
from gridsample_tools.utils.process import SubprocessRunner

# Load configurations
platform_config = PlatformConfig.from_json("config.json")
export_config = DdExportConfig.load(platform_config)
sampler_config = MontecarloSamplerConfig.load(platform_config)

# Sample the network
sampler = MontecarloSampler(
    network, SubprocessRunner(), FileForecastErrorsDataStorage("/data/fea"), sampler_config
)
sampler.init(MontecarloSamplerParameters(TimeHorizon.DACF, "fea1", n_samples=50))
draw_samples(sampler, 50, callback=run_loadflow)
```
"""

from .model import *
