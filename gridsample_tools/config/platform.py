"""
# Platform Configuration

This module provides the key-value configuration store shared by the export
configuration and the Monte Carlo sampler. The configuration is made of named
modules (sections), each one a flat mapping of property names to values.

## Classes

- `ModuleConfig`: A single named section with typed property getters
- `PlatformConfig`: Collection of module configurations

## File Format

The configuration is stored as a JSON object whose top-level keys are module
names:

```json
{
    "ddImportExport": {
        "automatonA11": true,
        "RSTRegulInjector": "RSTN_PCA",
        "loadPatternAlpha": 1.5
    },
    "montecarloSampler": {
        "binariesDir": "/opt/mcla/bin",
        "runtimeHomeDir": "/opt/mcr/v901",
        "copyFEFile": "true"
    }
}
```

## Example Usage

```python
from gridsample_tools.config import PlatformConfig

config = PlatformConfig.from_json("config.json")

if config.module_exists("ddImportExport"):
    module = config.get_module_config("ddImportExport")
    alpha = module.get_float_property("loadPatternAlpha", 1.0)
```
"""

from gridsample_tools.exceptions import ConfigurationError

import json
import os
from pathlib import Path
from typing import Any


CONFIG_FILE_ENV = "GRIDSAMPLE_CONFIG_FILE"
DEFAULT_CONFIG_FILE = os.path.join("~", ".gridsample", "config.json")

_MISSING = object()


class ModuleConfig:
    """
    A named configuration section with typed property getters.

    Every getter takes the property name and an optional default. When the
    property is absent the default is returned; when there is no default a
    `ConfigurationError` is raised. Values that cannot be coerced to the
    requested type always raise `ConfigurationError`, even when a default is
    given.

    Attributes:
        name (str): Name of the module.
        properties (dict[str, Any]): Raw property values.

    Example:
        ```python
        module = ModuleConfig("montecarloSampler", {"debug": "true", "optionSign": 2})
        module.get_bool_property("debug")             # True
        module.get_int_property("optionSign", 1)      # 2
        module.get_float_property("qThreshold", 1e3)  # 1000.0
        ```
    """

    def __init__(self, name: str, properties: dict[str, Any] = None):
        self.name = name
        self.properties = dict(properties) if properties else {}

    def __repr__(self):
        return f"ModuleConfig(name={self.name!r}, properties={self.properties!r})"

    def has_property(self, name: str) -> bool:
        return name in self.properties

    def _get(self, name: str, default):
        if name in self.properties:
            return self.properties[name], True
        if default is _MISSING:
            raise ConfigurationError(
                f"Property {name} is not set in module {self.name}"
            )
        return default, False

    def _invalid(self, name: str, value, expected: str) -> ConfigurationError:
        return ConfigurationError(
            f"Property {name} of module {self.name} is not a valid {expected}: {value!r}"
        )

    def get_string_property(self, name: str, default=_MISSING) -> str:
        value, found = self._get(name, default)
        if not found or value is None:
            return value
        if isinstance(value, (dict, list)):
            raise self._invalid(name, value, "string")
        return str(value)

    def get_bool_property(self, name: str, default=_MISSING) -> bool:
        value, found = self._get(name, default)
        if not found:
            return value
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in ("true", "false"):
            return value.strip().lower() == "true"
        raise self._invalid(name, value, "boolean")

    def get_int_property(self, name: str, default=_MISSING) -> int:
        value, found = self._get(name, default)
        if not found:
            return value
        if isinstance(value, bool):
            raise self._invalid(name, value, "integer")
        if isinstance(value, int):
            return value
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError:
                pass
        raise self._invalid(name, value, "integer")

    def get_float_property(self, name: str, default=_MISSING) -> float:
        value, found = self._get(name, default)
        if not found:
            return value
        if isinstance(value, bool):
            raise self._invalid(name, value, "float")
        if isinstance(value, (int, float)):
            return float(value)
        if isinstance(value, str):
            try:
                return float(value.strip())
            except ValueError:
                pass
        raise self._invalid(name, value, "float")

    def get_path_property(self, name: str, default=_MISSING) -> Path:
        value, found = self._get(name, default)
        if not found:
            return Path(value).expanduser() if value is not None else None
        if not isinstance(value, str) or not value:
            raise self._invalid(name, value, "path")
        return Path(value).expanduser()


class PlatformConfig(dict[str, ModuleConfig]):
    """
    Collection of named module configurations.

    This class extends dict, mapping module names to `ModuleConfig` instances.
    Absent modules are not an error at this level: callers check
    `module_exists` and fall back to their own defaults.

    Example:
        ```python
        config = PlatformConfig.from_dict({
            "eurostag-ech-export": {"noSwitch": True}
        })
        config.module_exists("eurostag-ech-export")  # True
        config.module_exists("ddImportExport")       # False
        ```
    """

    @classmethod
    def from_dict(cls, data: dict):
        """
        Create a PlatformConfig from a nested dictionary.

        Args:
            data (dict): Mapping of module names to property mappings.

        Returns:
            PlatformConfig: Configured instance.

        Raises:
            ConfigurationError: If a module is not a mapping.
        """
        modules = {}
        for name, properties in data.items():
            if not isinstance(properties, dict):
                raise ConfigurationError(
                    f"Module {name} must be a mapping of properties, got {type(properties).__name__}"
                )
            modules[name] = ModuleConfig(name, properties)
        return cls(modules)

    @classmethod
    def from_json(cls, infile: str):
        """
        Create a PlatformConfig from a JSON file.

        Args:
            infile (str): Path to the JSON file.

        Returns:
            PlatformConfig: Configured instance.

        Raises:
            FileNotFoundError: If the specified file does not exist.
            json.JSONDecodeError: If the file contains invalid JSON.
            ConfigurationError: If the top-level value is not an object.
        """
        with open(infile, "r") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration file {infile} must contain a JSON object")
        return cls.from_dict(data)

    @classmethod
    def default_config(cls):
        """
        Load the default platform configuration.

        The file is named by the `GRIDSAMPLE_CONFIG_FILE` environment variable,
        falling back to `~/.gridsample/config.json`. A missing file yields an
        empty configuration, so every consumer falls back to its defaults.
        """
        path = os.path.expanduser(os.environ.get(CONFIG_FILE_ENV, DEFAULT_CONFIG_FILE))
        if not os.path.exists(path):
            return cls()
        return cls.from_json(path)

    def module_exists(self, name: str) -> bool:
        return name in self

    def get_module_config(self, name: str) -> ModuleConfig:
        if name not in self:
            raise ConfigurationError(f"Module {name} not found")
        return self[name]

    def to_json(self, outfile: str):
        """
        Serialize the configuration to a JSON file.

        Note:
            Uses the "+x" mode to create a new file, will fail if file already exists.
        """
        with open(outfile, "+x") as f:
            json.dump({name: module.properties for name, module in self.items()}, f)
