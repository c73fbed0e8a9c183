import math
import os
import tempfile
from pathlib import Path

import numpy as np
import pandas as pd
import pytest
from scipy.io import loadmat, savemat

from gridsample_tools.config import PlatformConfig
from gridsample_tools.exceptions import ConfigurationError, SamplesExhaustedError
from gridsample_tools.montecarlo import (
    MontecarloSamplerConfig,
    SampledData,
    SamplingNetworkData,
    TimeHorizon,
    analyze_samples,
    draw_samples,
    read_sampled_data,
    write_sampling_network_data,
)
from gridsample_tools.network import MemoryNetwork


def test_time_horizon_labels():
    assert TimeHorizon.DACF.label == "DACF"
    assert TimeHorizon.from_label("IDCF") is TimeHorizon.IDCF
    with pytest.raises(ValueError):
        TimeHorizon.from_label("XX")


def test_sampler_config_defaults():
    config = MontecarloSamplerConfig.load(PlatformConfig())
    assert config.binaries_dir is None
    assert config.tmp_dir == Path(tempfile.gettempdir())
    assert (config.option_sign, config.centering, config.full_dependence) == (1, 1, 1)
    assert config.copy_fe_file is True
    assert config.debug is False
    assert config.q_threshold == 1000.0
    assert config.create_env() == {}


def test_sampler_config_load():
    config = MontecarloSamplerConfig.load(PlatformConfig.from_dict({
        "montecarloSampler": {
            "binariesDir": "/opt/mcla/bin",
            "runtimeHomeDir": "/opt/mcr",
            "tmpDir": "/var/tmp/mcs",
            "optionSign": "2",
            "centering": 0,
            "full_dependence": 0,
            "copyFEFile": "false",
            "debug": True,
            "qThreshold": 500,
        }
    }))
    assert config.program == Path("/opt/mcla/bin/mcla")
    assert config.tmp_dir == Path("/var/tmp/mcs")
    assert (config.option_sign, config.centering, config.full_dependence) == (2, 0, 0)
    assert config.copy_fe_file is False
    assert config.debug is True
    assert config.q_threshold == 500.0
    assert config.create_env() == {
        "MCRROOT": "/opt/mcr",
        "LD_LIBRARY_PATH": os.pathsep.join([
            "/opt/mcr/runtime/glnxa64",
            "/opt/mcr/bin/glnxa64",
            "/opt/mcr/sys/os/glnxa64",
        ]),
    }


def test_sampler_config_requires_directories():
    with pytest.raises(ConfigurationError):
        MontecarloSamplerConfig.load(PlatformConfig.from_dict({
            "montecarloSampler": {"binariesDir": "/opt/mcla/bin"}
        }))


def test_sampler_config_json(tmp_path):
    outfile = tmp_path / "config.json"
    MontecarloSamplerConfig(binaries_dir="/opt/bin", debug=True, tmp_dir=tmp_path).to_json(outfile)
    config = MontecarloSamplerConfig.from_json(outfile)
    assert config.binaries_dir == Path("/opt/bin")
    assert config.tmp_dir == tmp_path
    assert config.debug is True
    with pytest.raises(FileExistsError):
        config.to_json(outfile)


def test_write_sampling_network_data(tmp_path):
    network = MemoryNetwork("n")
    network.add_generator("G1", target_p=10.0, min_p=0.0, max_p=20.0)
    network.add_generator("G2", target_p=5.0, min_p=1.0, max_p=8.0, connected=False)
    network.add_load("L1", p0=7.0, q0=2.0)
    data = SamplingNetworkData.from_network(network, ["G1", "G2"], ["L1"])

    path = tmp_path / "network.mat"
    write_sampling_network_data(path, data)
    contents = loadmat(str(path))

    np.testing.assert_array_equal(contents["generators_P"], [[10.0, 5.0]])
    np.testing.assert_array_equal(contents["generators_Pmax"], [[20.0, 8.0]])
    np.testing.assert_array_equal(contents["generators_connected"], [[1, 0]])
    np.testing.assert_array_equal(contents["loads_Q"], [[2.0]])
    assert [str(i[0]) for i in contents["generators_ids"].ravel()] == ["G1", "G2"]


def test_read_sampled_data(tmp_path):
    path = tmp_path / "out.mat"
    savemat(str(path), {
        "PGEN": np.arange(6, dtype=float).reshape(3, 2),
        "QLOAD": np.ones((3, 1)),
    })
    data = read_sampled_data(path)
    assert data.n_samples == 3
    assert data.loads_active_power is None
    np.testing.assert_array_equal(data.generators_active_power[2], [4.0, 5.0])

    sample = data.get_sample(1)
    np.testing.assert_array_equal(sample.generators_active_power, [2.0, 3.0])
    assert sample.loads_active_power is None
    np.testing.assert_array_equal(sample.loads_reactive_power, [1.0])


def test_read_sampled_data_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_sampled_data(tmp_path / "missing.mat")


def test_sampled_data_to_frames():
    data = SampledData(
        generators_active_power=np.array([[1.0, 2.0], [3.0, 4.0]]),
        loads_reactive_power=np.array([[5.0], [6.0]]),
    )
    frames = data.to_frames(["G1", "G2"], ["L1"])
    assert set(frames) == {"generators_p", "loads_q"}
    assert list(frames["generators_p"].columns) == ["G1", "G2"]
    assert frames["loads_q"]["L1"].tolist() == [5.0, 6.0]


def test_analyze_samples(tmp_path):
    data = SampledData(
        generators_active_power=np.array([[1.0, math.nan], [3.0, 4.0], [5.0, 8.0]]),
    )
    stats = analyze_samples(data, ["G1", "G2"], [])

    frame = stats["generators_p"]
    assert isinstance(frame, pd.DataFrame)
    assert frame.loc["mean", "G1"] == pytest.approx(3.0)
    assert frame.loc["mean", "G2"] == pytest.approx(6.0)
    assert frame.loc["stddev", "G1"] == pytest.approx(2.0)
    assert frame.loc["min_val", "G2"] == 4.0
    assert frame.loc["max_val", "G1"] == 5.0
    assert frame.loc["ci_low", "G1"] <= frame.loc["ci_high", "G1"]

    stats.save(tmp_path)
    saved = pd.read_csv(tmp_path / "generators_p.csv", index_col="statistic")
    assert saved.loc["mean", "G1"] == pytest.approx(3.0)


class CountingSampler:
    def __init__(self, n):
        self.network = MemoryNetwork("n")
        self.n = n
        self.calls = 0

    def sample(self):
        if self.calls >= self.n:
            raise SamplesExhaustedError("exhausted")
        self.calls += 1


def test_draw_samples_runs_callback():
    sampler = CountingSampler(3)
    results = draw_samples(sampler, 3, callback=lambda i, network: (i, network.id), progress=False)
    assert results == [(0, "n"), (1, "n"), (2, "n")]
    assert sampler.calls == 3


def test_draw_samples_propagates_exhaustion():
    with pytest.raises(SamplesExhaustedError):
        draw_samples(CountingSampler(2), 3, progress=False)
