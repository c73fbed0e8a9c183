"""MATLAB file exchange with the sampling tool.

The sampling tool is a compiled MATLAB program: it reads the network data and
the forecast errors data from `.mat` files and writes the sampled batch to a
`.mat` file. This module reads and writes those files with `scipy.io`.

Network data variables:

- `generators_ids`, `loads_ids`: cell arrays of element ids
- `generators_P`, `generators_Pmin`, `generators_Pmax`, `generators_connected`
- `loads_P`, `loads_Q`, `loads_connected`

Sampled batch variables, each optional, with shape (samples, elements):

- `PGEN`: generator active power
- `PLOAD`: load active power
- `QLOAD`: load reactive power
"""

from .data import SampledData, SamplingNetworkData

import numpy as np
from scipy.io import loadmat, savemat
import logging
import os


logger = logging.getLogger(__name__)

GENERATORS_P_VAR = "PGEN"
LOADS_P_VAR = "PLOAD"
LOADS_Q_VAR = "QLOAD"


def write_sampling_network_data(path: str | os.PathLike, data: SamplingNetworkData):
    """
    Write the sampling network data to a `.mat` file.

    Args:
        path (str | os.PathLike): Destination file, overwritten if present.
        data (SamplingNetworkData): Data to write.
    """
    variables = {
        "generators_ids": np.array(data.generators_ids, dtype=object),
        "generators_P": np.asarray(data.generators_active_power, dtype=float),
        "generators_Pmin": np.asarray(data.generators_min_p, dtype=float),
        "generators_Pmax": np.asarray(data.generators_max_p, dtype=float),
        "generators_connected": np.asarray(data.generators_connected, dtype=np.uint8),
        "loads_ids": np.array(data.loads_ids, dtype=object),
        "loads_P": np.asarray(data.loads_active_power, dtype=float),
        "loads_Q": np.asarray(data.loads_reactive_power, dtype=float),
        "loads_connected": np.asarray(data.loads_connected, dtype=np.uint8),
    }
    savemat(os.fspath(path), variables, do_compression=True)
    logger.debug(
        f"Wrote sampling network data ({len(data.generators_ids)} generators, "
        f"{len(data.loads_ids)} loads) to {path}"
    )


def _read_table(contents: dict, name: str) -> np.ndarray | None:
    if name not in contents:
        return None
    table = np.asarray(contents[name], dtype=float)
    if table.size == 0:
        return None
    return np.atleast_2d(table)


def read_sampled_data(path: str | os.PathLike) -> SampledData:
    """
    Read the sampled batch written by the sampling tool.

    Args:
        path (str | os.PathLike): Result `.mat` file.

    Returns:
        SampledData: Batch with one row per sample. Tables missing from the
            file, or empty, are None.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is not a readable `.mat` file or a table is
            not numeric.
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Expected sampler output file not found: {path}")

    contents = loadmat(os.fspath(path))

    return SampledData(
        generators_active_power=_read_table(contents, GENERATORS_P_VAR),
        loads_active_power=_read_table(contents, LOADS_P_VAR),
        loads_reactive_power=_read_table(contents, LOADS_Q_VAR),
    )
