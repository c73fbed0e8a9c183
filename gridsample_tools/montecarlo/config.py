"""Configuration of the Monte Carlo sampler.

This module provides the configuration class for the Monte Carlo sampler:
location of the sampling tool and of its runtime, staging directory, tuning
options passed verbatim to the tool, and the reactive power sanity threshold
applied when sampled values are written into the network.

The configuration is read from the `montecarloSampler` section of the platform
configuration, and can also be persisted to and restored from JSON.

Typical usage example:

    from gridsample_tools.montecarlo import MontecarloSamplerConfig

    config = MontecarloSamplerConfig.load()
    config.debug = True
    config.to_json("sampler_config.json")
"""

from ..config.platform import PlatformConfig

import json
import os
import tempfile
from dataclasses import dataclass, asdict
from pathlib import Path


MODULE_NAME = "montecarloSampler"
SAMPLER_PROGRAM = "mcla"
DEFAULT_Q_THRESHOLD = 1000.0


@dataclass
class MontecarloSamplerConfig:
    """Configuration class for the Monte Carlo sampler.

    Attributes:
        binaries_dir (Path, optional): Directory holding the `mcla` executable.
        runtime_home_dir (Path, optional): Home directory of the MATLAB
            runtime the executable is linked against.
        tmp_dir (Path): Directory where the per-network input artifact is
            staged. Defaults to the system temporary directory.
        option_sign (int): Sign option passed to the sampling tool. Defaults to 1.
        centering (int): Centering option passed to the sampling tool.
            Defaults to 1.
        full_dependence (int): Full dependence option passed to the sampling
            tool. Defaults to 1.
        copy_fe_file (bool): Copy the forecast errors data file into the
            working directory instead of passing its absolute path. Defaults
            to True.
        debug (bool): Keep the working directory of the sampling tool after
            the run. Defaults to False.
        q_threshold (float): Sampled load reactive power with a larger
            magnitude is discarded, keeping the previous value. Defaults to
            1000.0.
    """

    binaries_dir: Path = None
    runtime_home_dir: Path = None
    tmp_dir: Path = None
    option_sign: int = 1
    centering: int = 1
    full_dependence: int = 1
    copy_fe_file: bool = True
    debug: bool = False
    q_threshold: float = DEFAULT_Q_THRESHOLD

    def __post_init__(self):
        for name in ("binaries_dir", "runtime_home_dir", "tmp_dir"):
            value = getattr(self, name)
            if value is not None and not isinstance(value, Path):
                setattr(self, name, Path(value).expanduser())
        if self.tmp_dir is None:
            self.tmp_dir = Path(tempfile.gettempdir())

    @classmethod
    def load(cls, platform_config: PlatformConfig = None):
        """Load the sampler configuration from the platform configuration.

        Args:
            platform_config (PlatformConfig, optional): Configuration source.
                Defaults to `PlatformConfig.default_config()`.

        Returns:
            MontecarloSamplerConfig: Configuration read from the
                `montecarloSampler` section, or the defaults when the section
                is missing.

        Raises:
            ConfigurationError: If `binariesDir` or `runtimeHomeDir` is missing
                from an existing section, or a value cannot be coerced.
        """
        if platform_config is None:
            platform_config = PlatformConfig.default_config()

        if not platform_config.module_exists(MODULE_NAME):
            return cls()

        module = platform_config.get_module_config(MODULE_NAME)
        return cls(
            binaries_dir=module.get_path_property("binariesDir"),
            runtime_home_dir=module.get_path_property("runtimeHomeDir"),
            tmp_dir=module.get_path_property("tmpDir", None),
            option_sign=module.get_int_property("optionSign", 1),
            centering=module.get_int_property("centering", 1),
            full_dependence=module.get_int_property("full_dependence", 1),
            copy_fe_file=module.get_bool_property("copyFEFile", True),
            debug=module.get_bool_property("debug", False),
            q_threshold=module.get_float_property("qThreshold", DEFAULT_Q_THRESHOLD),
        )

    @classmethod
    def from_json(cls, infile: str):
        """Create a MontecarloSamplerConfig instance from a JSON file.

        Raises:
            FileNotFoundError: If the specified file does not exist.
            json.JSONDecodeError: If the file contains invalid JSON.
            TypeError: If the loaded data doesn't match the expected structure.
        """
        with open(infile, "r") as f:
            data = json.load(f)
        return cls(**data)

    def to_json(self, outfile: str):
        """Serialize the configuration to a JSON file.

        Note:
            The file is opened in exclusive creation mode ("+x") to prevent
            accidental overwrites.
        """
        data = {
            k: str(v) if isinstance(v, Path) else v
            for k, v in asdict(self).items()
        }
        with open(outfile, "+x") as f:
            json.dump(data, f)

    @property
    def program(self) -> Path:
        """Absolute path of the sampling tool executable."""
        if self.binaries_dir is None:
            raise ValueError("binaries_dir is not configured")
        return (self.binaries_dir / SAMPLER_PROGRAM).absolute()

    def create_env(self) -> dict[str, str]:
        """Build the environment variables required by the MATLAB runtime.

        Returns:
            dict[str, str]: `MCRROOT` and `LD_LIBRARY_PATH`, or an empty
                mapping when no runtime home directory is configured.
        """
        if self.runtime_home_dir is None:
            return {}
        home = self.runtime_home_dir
        library_path = os.pathsep.join(
            str(p) for p in (
                home / "runtime" / "glnxa64",
                home / "bin" / "glnxa64",
                home / "sys" / "os" / "glnxa64",
            )
        )
        return {
            "MCRROOT": str(home),
            "LD_LIBRARY_PATH": library_path,
        }
