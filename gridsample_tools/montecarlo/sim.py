"""Drawing and analyzing Monte Carlo samples.

This module provides helpers built on top of a sampler: a loop drawing a
number of samples into the network, running a callback after each one (for
example a load flow), and the statistical summary of a sampled batch.

Typical usage example:

```python
    from gridsample_tools import MontecarloSampler
    from gridsample_tools.montecarlo import draw_samples, analyze_samples

    sampler = MontecarloSampler(network, runner, storage)
    sampler.init(parameters)

    draw_samples(sampler, parameters.n_samples, callback=run_loadflow)

    stats = analyze_samples(
        sampler.sampled_data,
        sampler.connected_generators_ids,
        sampler.connected_loads_ids
    )
    stats.save("results/")
```
"""

from .data import SampledData
from gridsample_tools.utils.results import StatsResults

# Data
import numpy as np
import pandas as pd

# Typing
from typing import Any, Callable

# Progress
from tqdm import tqdm

import warnings


def draw_samples(
    sampler,
    n: int,
    callback: Callable[[int, Any], Any] = None,
    progress: bool = True
) -> list:
    """Draws `n` samples into the sampler's network, one after the other.

    Args:
        sampler (MontecarloSampler): An initialized sampler.
        n (int): Number of samples to draw. Must not exceed the number of
            samples requested at `init`, or the sampler raises
            `SamplesExhaustedError` once it runs out.
        callback (Callable[[int, Any], Any], optional): Called with the sample
            index and the network after each sample is written. Defaults to
            None.
        progress (bool, optional): Display a progress bar. Defaults to True.

    Returns:
        list: Callback return values, one per sample (None without callback).
    """
    results = []
    for i in tqdm(range(n), disable=not progress):
        sampler.sample()
        results.append(callback(i, sampler.network) if callback is not None else None)
    return results


def analyze_samples(
    sampled_data: SampledData,
    generators_ids: list[str],
    loads_ids: list[str]
) -> StatsResults:
    """Computes summary statistics of a sampled batch.

    Statistics are computed per element across samples, ignoring NaN values.
    An element whose samples are all NaN gets NaN statistics.

    Args:
        sampled_data (SampledData): The sampled batch.
        generators_ids (list[str]): Ids of the sampled generators, in column
            order (the connected generators of the sampler).
        loads_ids (list[str]): Ids of the sampled loads, in column order.

    Returns:
        StatsResults: One DataFrame per present quantity, with rows:
            - ci_low, ci_high: 95% interval bounds
            - mean: Sample means
            - stddev: Sample standard deviations
            - min_val, max_val: Minimum and maximum values
    """
    stats = {}
    frames = sampled_data.to_frames(generators_ids, loads_ids)

    for quantity, frame in frames.items():
        vals = frame.to_numpy(dtype=float)  # N x D

        with warnings.catch_warnings():
            # All-NaN columns yield NaN statistics
            warnings.simplefilter("ignore", category=RuntimeWarning)
            summary = {
                "ci_low": np.nanquantile(vals, 0.025, axis=0),
                "ci_high": np.nanquantile(vals, 0.975, axis=0),
                "mean": np.nanmean(vals, axis=0),
                "stddev": np.nanstd(vals, axis=0, ddof=1) if vals.shape[0] > 1
                else np.zeros(vals.shape[1]),
                "min_val": np.nanmin(vals, axis=0),
                "max_val": np.nanmax(vals, axis=0),
            }

        stats[quantity] = pd.DataFrame.from_dict(
            summary, orient="index", columns=frame.columns
        )

    return StatsResults(stats)
