"""
# Forecast Errors Data Storage

This module provides access to the results of forecast errors analyses: the
offline samples data file consumed by the sampling tool, and the parameters of
the analysis that produced it.

## Classes

- `ForecastErrorsAnalyzerParameters`: Metadata of a forecast errors analysis
- `ForecastErrorsDataStorage`: Abstract storage interface
- `FileForecastErrorsDataStorage`: Directory-backed storage

## Directory Layout

```
<root>/
    <analysis id>/
        <time horizon label>/
            parameters.json
            forecast_offline_samples.mat
```

## Example Usage

```python
from gridsample_tools.forecast import FileForecastErrorsDataStorage
from gridsample_tools.montecarlo import TimeHorizon

storage = FileForecastErrorsDataStorage("/data/fea")
if storage.is_forecast_offline_samples_data_available("fea1", TimeHorizon.DACF):
    params = storage.get_parameters("fea1", TimeHorizon.DACF)
    print(f"{params.n_samples} samples available")
```
"""

from gridsample_tools.montecarlo.data import TimeHorizon

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any
import json
import shutil


PARAMETERS_FILE = "parameters.json"
OFFLINE_SAMPLES_FILE = "forecast_offline_samples.mat"


@dataclass
class ForecastErrorsAnalyzerParameters:
    """
    Metadata of a forecast errors analysis.

    Attributes:
        fe_analysis_id (str): Identifier of the analysis.
        time_horizon (TimeHorizon): Horizon the analysis was run for.
        n_samples (int): Number of offline samples available.
        extra (dict[str, Any]): Any other analysis parameter, kept as read.
    """
    fe_analysis_id: str
    time_horizon: TimeHorizon
    n_samples: int
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict):
        data = dict(data)
        fe_analysis_id = data.pop("fe_analysis_id")
        horizon = data.pop("time_horizon")
        n_samples = int(data.pop("n_samples"))
        extra = data.pop("extra", {})
        extra.update(data)
        return cls(
            fe_analysis_id=fe_analysis_id,
            time_horizon=TimeHorizon.from_label(horizon) if isinstance(horizon, str) else horizon,
            n_samples=n_samples,
            extra=extra,
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["time_horizon"] = self.time_horizon.label
        return data


class ForecastErrorsDataStorage(ABC):
    """
    Abstract storage of forecast errors analysis results.

    Implementations are queried by the Monte Carlo sampler for data
    availability, analysis parameters and the offline samples data file.
    """

    @abstractmethod
    def is_forecast_offline_samples_data_available(
        self,
        fe_analysis_id: str,
        time_horizon: TimeHorizon
    ) -> bool:
        pass

    @abstractmethod
    def get_parameters(
        self,
        fe_analysis_id: str,
        time_horizon: TimeHorizon
    ) -> ForecastErrorsAnalyzerParameters:
        pass

    @abstractmethod
    def get_forecast_offline_samples_file(
        self,
        fe_analysis_id: str,
        time_horizon: TimeHorizon,
        destination: Path
    ) -> Path:
        """Copy the offline samples data file to `destination` and return it."""
        pass

    @abstractmethod
    def get_forecast_offline_samples_file_path(
        self,
        fe_analysis_id: str,
        time_horizon: TimeHorizon
    ) -> Path:
        """Return the path of the stored offline samples data file."""
        pass


class FileForecastErrorsDataStorage(ForecastErrorsDataStorage):
    """
    Forecast errors data storage backed by a directory tree.

    Attributes:
        root (Path): Root directory of the storage.
    """

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def _analysis_dir(self, fe_analysis_id: str, time_horizon: TimeHorizon) -> Path:
        return self.root / fe_analysis_id / time_horizon.label

    def is_forecast_offline_samples_data_available(self, fe_analysis_id, time_horizon):
        analysis_dir = self._analysis_dir(fe_analysis_id, time_horizon)
        return (analysis_dir / OFFLINE_SAMPLES_FILE).is_file() \
            and (analysis_dir / PARAMETERS_FILE).is_file()

    def get_parameters(self, fe_analysis_id, time_horizon):
        """
        Raises:
            FileNotFoundError: If the analysis has no parameters file.
        """
        with open(self._analysis_dir(fe_analysis_id, time_horizon) / PARAMETERS_FILE, "r") as f:
            data = json.load(f)
        data.setdefault("fe_analysis_id", fe_analysis_id)
        data.setdefault("time_horizon", time_horizon.label)
        return ForecastErrorsAnalyzerParameters.from_dict(data)

    def get_forecast_offline_samples_file(self, fe_analysis_id, time_horizon, destination):
        return Path(shutil.copyfile(
            self.get_forecast_offline_samples_file_path(fe_analysis_id, time_horizon),
            destination
        ))

    def get_forecast_offline_samples_file_path(self, fe_analysis_id, time_horizon):
        """
        Raises:
            FileNotFoundError: If the analysis has no offline samples data file.
        """
        path = self._analysis_dir(fe_analysis_id, time_horizon) / OFFLINE_SAMPLES_FILE
        if not path.is_file():
            raise FileNotFoundError(
                f"No forecast offline samples data file for analysis {fe_analysis_id}, "
                f"time horizon {time_horizon.horizon_name}: {path}"
            )
        return path.absolute()

    def store(
        self,
        parameters: ForecastErrorsAnalyzerParameters,
        offline_samples_file: str | Path
    ) -> Path:
        """
        Store the results of a forecast errors analysis.

        Args:
            parameters (ForecastErrorsAnalyzerParameters): Analysis metadata.
            offline_samples_file (str | Path): Offline samples data file to copy.

        Returns:
            Path: Directory holding the stored analysis.
        """
        analysis_dir = self._analysis_dir(parameters.fe_analysis_id, parameters.time_horizon)
        analysis_dir.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(offline_samples_file, analysis_dir / OFFLINE_SAMPLES_FILE)
        with open(analysis_dir / PARAMETERS_FILE, "w") as f:
            json.dump(parameters.to_dict(), f)
        return analysis_dir
