"""
# Configuration Management

This module provides the platform configuration store and the configuration
classes read from it.

## Components

- **PlatformConfig**: Named module configurations loaded from a JSON file
- **ModuleConfig**: Typed property getters for a single module
- **DdExportConfig**: Options of the Eurostag export/import module

## Example Usage

```python
from gridsample_tools.config import PlatformConfig, DdExportConfig

platform_config = PlatformConfig.from_json("config.json")
export_config = DdExportConfig.load(platform_config)

print(export_config.rst_regul_injector)
```
"""

from .platform import *
from .export import *
