"""Data structures exchanged by the Monte Carlo sampler.

This module provides the request parameters of a sampler, the content of the
per-network input artifact handed to the external sampling tool, and the
sampled batch it produces.

Typical usage example:

    from gridsample_tools.montecarlo import (
        MontecarloSamplerParameters, SampledData, TimeHorizon
    )

    parameters = MontecarloSamplerParameters(TimeHorizon.DACF, "fea1", n_samples=10)
    batch = SampledData(generators_active_power=np.zeros((10, 3)))
    sample = batch.get_sample(0)
"""

from gridsample_tools.network import Network

from dataclasses import dataclass
from enum import Enum

import numpy as np
import pandas as pd


class TimeHorizon(Enum):
    """Forecasting interval selecting the forecast errors dataset variant.

    Each member has a human-readable `horizon_name` and a `label` safe to use
    in file names.
    """

    DACF = ("day-ahead", "DACF")
    D2CF = ("two-days-ahead", "D2CF")
    IDCF = ("intraday", "IDCF")

    def __init__(self, horizon_name: str, label: str):
        self.horizon_name = horizon_name
        self.label = label

    @classmethod
    def from_label(cls, label: str):
        for horizon in cls:
            if horizon.label == label:
                return horizon
        raise ValueError(f"Unknown time horizon label: {label}")


class SamplerState(Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    SAMPLING = "sampling"
    EXHAUSTED = "exhausted"
    FAILED = "failed"


@dataclass
class MontecarloSamplerParameters:
    """Parameters of a sampling request.

    Attributes:
        time_horizon (TimeHorizon): Horizon of the forecast errors analysis.
        fe_analysis_id (str): Identifier of the forecast errors analysis.
        n_samples (int): Number of samples to draw. Must be positive and not
            exceed the number of samples available in the analysis.
    """

    time_horizon: TimeHorizon
    fe_analysis_id: str
    n_samples: int


@dataclass
class SamplingNetworkData:
    """Content of the per-network input artifact of the sampling tool.

    Generator and load arrays follow the order of `generators_ids` and
    `loads_ids`, which must match the order of the historical forecast errors
    data.

    Attributes:
        generators_ids (list[str]): Ordered generator ids.
        generators_active_power (np.ndarray): Generator active power, generator
            sign convention (positive when producing).
        generators_min_p (np.ndarray): Generator minimum active power.
        generators_max_p (np.ndarray): Generator maximum active power.
        generators_connected (np.ndarray): Generator connection flags.
        loads_ids (list[str]): Ordered load ids.
        loads_active_power (np.ndarray): Load active power.
        loads_reactive_power (np.ndarray): Load reactive power.
        loads_connected (np.ndarray): Load connection flags.
    """

    generators_ids: list[str]
    generators_active_power: np.ndarray
    generators_min_p: np.ndarray
    generators_max_p: np.ndarray
    generators_connected: np.ndarray
    loads_ids: list[str]
    loads_active_power: np.ndarray
    loads_reactive_power: np.ndarray
    loads_connected: np.ndarray

    @classmethod
    def from_network(
        cls,
        network: Network,
        generators_ids: list[str],
        loads_ids: list[str]
    ):
        """Collect the sampling input data of the given network elements.

        Args:
            network (Network): Network to read.
            generators_ids (list[str]): Generator ids, in sampling order.
            loads_ids (list[str]): Load ids, in sampling order.

        Returns:
            SamplingNetworkData: Data ready to be written to the input artifact.
        """
        generators = [network.get_generator(i) for i in generators_ids]
        loads = [network.get_load(i) for i in loads_ids]

        return cls(
            generators_ids=list(generators_ids),
            generators_active_power=np.array([g.target_p for g in generators], dtype=float),
            generators_min_p=np.array([g.min_p for g in generators], dtype=float),
            generators_max_p=np.array([g.max_p for g in generators], dtype=float),
            generators_connected=np.array([g.terminal.connected for g in generators], dtype=bool),
            loads_ids=list(loads_ids),
            loads_active_power=np.array([load.p0 for load in loads], dtype=float),
            loads_reactive_power=np.array([load.q0 for load in loads], dtype=float),
            loads_connected=np.array([load.terminal.connected for load in loads], dtype=bool),
        )


@dataclass
class SampleData:
    """A single sample: one value per element, or None when not sampled."""

    generators_active_power: np.ndarray | None = None
    loads_active_power: np.ndarray | None = None
    loads_reactive_power: np.ndarray | None = None


@dataclass
class SampledData:
    """Batch of samples produced by one run of the sampling tool.

    Each table has one row per sample and one column per sampled element.
    A table is None when the tool did not sample that quantity.

    Attributes:
        generators_active_power (np.ndarray, optional): Generator active power,
            load sign convention.
        loads_active_power (np.ndarray, optional): Load active power.
        loads_reactive_power (np.ndarray, optional): Load reactive power.
    """

    generators_active_power: np.ndarray | None = None
    loads_active_power: np.ndarray | None = None
    loads_reactive_power: np.ndarray | None = None

    @property
    def n_samples(self) -> int:
        """Number of rows of the largest present table."""
        tables = [t for t in self._tables() if t is not None]
        return max((t.shape[0] for t in tables), default=0)

    def _tables(self):
        return (
            self.generators_active_power,
            self.loads_active_power,
            self.loads_reactive_power,
        )

    def get_sample(self, index: int) -> SampleData:
        """
        Extract the sample at the given row index.

        Raises:
            IndexError: If a present table has no row at `index`.
        """
        rows = [
            np.asarray(table[index], dtype=float) if table is not None else None
            for table in self._tables()
        ]
        return SampleData(*rows)

    def to_frames(
        self,
        generators_ids: list[str],
        loads_ids: list[str]
    ) -> dict[str, pd.DataFrame]:
        """
        Convert the present tables to DataFrames with one column per element.

        Args:
            generators_ids (list[str]): Column names of the generator table.
            loads_ids (list[str]): Column names of the load tables.

        Returns:
            dict[str, pd.DataFrame]: Frames keyed by "generators_p", "loads_p"
                and "loads_q"; absent tables are left out.
        """
        frames = {}
        for key, table, ids in (
            ("generators_p", self.generators_active_power, generators_ids),
            ("loads_p", self.loads_active_power, loads_ids),
            ("loads_q", self.loads_reactive_power, loads_ids),
        ):
            if table is not None:
                frames[key] = pd.DataFrame(np.atleast_2d(table), columns=list(ids))
        return frames
