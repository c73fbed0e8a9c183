import math
import threading

import numpy as np
import pytest
from scipy.io import savemat

from gridsample_tools.model import MontecarloSampler, Sampler, MCS_OUTPUT_FILE_NAME
from gridsample_tools.exceptions import (
    SamplerError,
    SamplerNotReadyError,
    SamplerStateError,
    SamplesExhaustedError,
    SamplingResultsError,
)
from gridsample_tools.forecast import (
    FileForecastErrorsDataStorage,
    ForecastErrorsAnalyzerParameters,
)
from gridsample_tools.montecarlo import (
    MontecarloSamplerConfig,
    MontecarloSamplerParameters,
    SampleData,
    SamplerState,
    TimeHorizon,
)
from gridsample_tools.network import MemoryNetwork
from gridsample_tools.utils.process import ExecutionReport, ProcessRunner


class FakeRunner(ProcessRunner):
    """Writes a fixed batch as the sampling tool output."""

    def __init__(self, variables=None, returncode=0):
        self.variables = variables
        self.returncode = returncode
        self.calls = []

    def execute(self, command, working_dir, env=None):
        self.calls.append((command, sorted(p.name for p in working_dir.iterdir()), env))
        if self.variables is not None:
            savemat(str(working_dir / MCS_OUTPUT_FILE_NAME), self.variables)
        return ExecutionReport(command_id=command.id, returncode=self.returncode)


def make_network():
    network = MemoryNetwork("sim net")
    network.add_generator("G1", target_p=100.0, min_p=0.0, max_p=200.0)
    network.add_generator("G2", target_p=50.0, min_p=10.0, max_p=60.0, connected=False)
    network.add_generator("G3", target_p=30.0, min_p=0.0, max_p=40.0)
    network.add_load("L1", p0=80.0, q0=10.0)
    network.add_load("L2", p0=20.0, q0=5.0)
    return network


def make_storage(tmp_path, n_samples=10):
    storage = FileForecastErrorsDataStorage(tmp_path / "fea")
    fe_file = tmp_path / "fe.mat"
    savemat(str(fe_file), {"dummy": np.zeros((1, 1))})
    storage.store(
        ForecastErrorsAnalyzerParameters("fea1", TimeHorizon.DACF, n_samples),
        fe_file
    )
    return storage


def make_sampler(tmp_path, runner, n_available=10, **config_kwargs):
    config = MontecarloSamplerConfig(
        binaries_dir=tmp_path / "bin",
        runtime_home_dir=tmp_path / "mcr",
        tmp_dir=tmp_path / "tmp",
        **config_kwargs
    )
    network = make_network()
    sampler = MontecarloSampler(network, runner, make_storage(tmp_path, n_available), config)
    return sampler, network


def batch(n=3):
    return {
        "PGEN": np.array([[-50.0 - i, -20.0 - i] for i in range(n)]),
        "PLOAD": np.array([[90.0 + i, 25.0 + i] for i in range(n)]),
        "QLOAD": np.array([[12.0 + i, 6.0 + i] for i in range(n)]),
    }


def params(n):
    return MontecarloSamplerParameters(TimeHorizon.DACF, "fea1", n)


def test_sampler_inheritance():
    assert issubclass(MontecarloSampler, Sampler)


def test_name_and_version(tmp_path):
    sampler, _ = make_sampler(tmp_path, FakeRunner())
    assert sampler.name == "RSE Montecarlo Sampler"
    assert sampler.version is None
    assert sampler.state is SamplerState.UNINITIALIZED


def test_constructor_requires_collaborators(tmp_path):
    storage = make_storage(tmp_path)
    with pytest.raises(ValueError):
        MontecarloSampler(None, FakeRunner(), storage, MontecarloSamplerConfig())
    with pytest.raises(ValueError):
        MontecarloSampler(make_network(), None, storage, MontecarloSamplerConfig())
    with pytest.raises(ValueError):
        MontecarloSampler(make_network(), FakeRunner(), None, MontecarloSamplerConfig())


def test_init_stages_network_data_file(tmp_path):
    sampler, _ = make_sampler(tmp_path, FakeRunner())
    sampler.init(params(3))

    assert sampler.state is SamplerState.INITIALIZED
    assert sampler.generators_ids == ["G1", "G2", "G3"]
    assert sampler.connected_generators_ids == ["G1", "G3"]
    assert sampler.loads_ids == ["L1", "L2"]
    assert sampler.connected_loads_ids == ["L1", "L2"]

    staged = sampler.network_data_file
    assert staged.exists()
    assert staged.parent == tmp_path / "tmp"
    assert staged.name.startswith("mcsamplerinput_sim_net_DACF_")
    assert staged.suffix == ".mat"


def test_init_fails_without_forecast_data(tmp_path):
    sampler, _ = make_sampler(tmp_path, FakeRunner())
    with pytest.raises(SamplerNotReadyError):
        sampler.init(MontecarloSamplerParameters(TimeHorizon.IDCF, "fea1", 3))
    with pytest.raises(SamplerNotReadyError):
        sampler.init(MontecarloSamplerParameters(TimeHorizon.DACF, "unknown", 3))


@pytest.mark.parametrize("n", [0, -1, 11])
def test_init_fails_on_sample_count_out_of_bounds(tmp_path, n):
    sampler, _ = make_sampler(tmp_path, FakeRunner(), n_available=10)
    with pytest.raises(SamplerNotReadyError):
        sampler.init(params(n))
    assert sampler.network_data_file is None


def test_init_accepts_all_available_samples(tmp_path):
    sampler, _ = make_sampler(tmp_path, FakeRunner(), n_available=10)
    sampler.init(params(10))
    assert sampler.n_samples == 10


def test_init_twice_fails(tmp_path):
    sampler, _ = make_sampler(tmp_path, FakeRunner())
    sampler.init(params(3))
    with pytest.raises(SamplerStateError):
        sampler.init(params(3))


def test_sample_before_init_fails(tmp_path):
    sampler, _ = make_sampler(tmp_path, FakeRunner(batch()))
    with pytest.raises(SamplerStateError):
        sampler.sample()


def test_single_tool_run_and_cursor(tmp_path):
    runner = FakeRunner(batch(3))
    sampler, _ = make_sampler(tmp_path, runner)
    sampler.init(params(3))

    for k in range(1, 3):
        sampler.sample()
        assert sampler.cursor == k
        assert sampler.batch_runs == 1
        assert sampler.state is SamplerState.SAMPLING
    assert len(runner.calls) == 1


def test_exhausted_sampler_always_fails(tmp_path):
    runner = FakeRunner(batch(2))
    sampler, _ = make_sampler(tmp_path, runner)
    sampler.init(params(2))
    sampler.sample()
    sampler.sample()
    assert sampler.state is SamplerState.EXHAUSTED

    for _ in range(3):
        with pytest.raises(SamplesExhaustedError):
            sampler.sample()
    assert sampler.cursor == 2
    assert len(runner.calls) == 1


def test_command_with_copied_fe_file(tmp_path):
    runner = FakeRunner(batch(3))
    sampler, _ = make_sampler(tmp_path, runner, option_sign=2, centering=0, full_dependence=1)
    sampler.init(params(3))
    sampler.sample()

    command, files, env = runner.calls[0]
    fe_name = "mcsamplerinput_forecast_offline_samples_DACF.mat"
    assert command.id == "matmcs"
    assert command.program == str((tmp_path / "bin" / "mcla").absolute())
    assert command.args == [
        "mcsamplerinput_sim_net.mat", fe_name, "mcsampleroutput.mat", "3", "2", "0", "1"
    ]
    assert command.input_files == ["mcsamplerinput_sim_net.mat", fe_name]
    assert command.output_files == ["mcsampleroutput.mat", "printSamples.csv"]
    assert files == sorted(["mcsamplerinput_sim_net.mat", fe_name])
    assert env["MCRROOT"] == str(tmp_path / "mcr")


def test_command_with_fe_file_path(tmp_path):
    runner = FakeRunner(batch(3))
    sampler, _ = make_sampler(tmp_path, runner, copy_fe_file=False)
    sampler.init(params(3))
    sampler.sample()

    command, files, _ = runner.calls[0]
    expected = tmp_path / "fea" / "fea1" / "DACF" / "forecast_offline_samples.mat"
    assert command.args[1] == str(expected.absolute())
    assert command.input_files == ["mcsamplerinput_sim_net.mat"]
    assert files == ["mcsamplerinput_sim_net.mat"]


def test_working_directory_removed_after_run(tmp_path):
    seen = []

    class RecordingRunner(FakeRunner):
        def execute(self, command, working_dir, env=None):
            seen.append(working_dir)
            return super().execute(command, working_dir, env)

    sampler, _ = make_sampler(tmp_path, RecordingRunner(batch(3)))
    sampler.init(params(3))
    sampler.sample()
    assert not seen[0].exists()


def test_missing_results_raise_sampling_results_error(tmp_path):
    sampler, _ = make_sampler(tmp_path, FakeRunner(variables=None, returncode=1))
    sampler.init(params(3))
    with pytest.raises(SamplingResultsError) as excinfo:
        sampler.sample()
    assert isinstance(excinfo.value.__cause__, FileNotFoundError)


def test_failed_run_is_not_retried(tmp_path):
    class FailOnceRunner(FakeRunner):
        def execute(self, command, working_dir, env=None):
            report = super().execute(command, working_dir, env)
            self.variables = batch(3)
            return report

    runner = FailOnceRunner(variables=None, returncode=1)
    sampler, _ = make_sampler(tmp_path, runner)
    sampler.init(params(3))

    with pytest.raises(SamplingResultsError):
        sampler.sample()
    assert sampler.state is SamplerState.FAILED

    for _ in range(2):
        with pytest.raises(SamplerError):
            sampler.sample()
    assert len(runner.calls) == 1
    assert sampler.batch_runs == 1
    assert sampler.cursor == 0
    assert sampler.sampled_data is None


def test_concurrent_sample_calls_share_one_run(tmp_path):
    n = 8
    drawn = []
    errors = []

    class RecordingSampler(MontecarloSampler):
        def put_sample_data_into_network(self, sample):
            drawn.append(float(sample.generators_active_power[0]))
            super().put_sample_data_into_network(sample)

    runner = FakeRunner(batch(n))
    config = MontecarloSamplerConfig(
        binaries_dir=tmp_path / "bin",
        runtime_home_dir=tmp_path / "mcr",
        tmp_dir=tmp_path / "tmp",
    )
    sampler = RecordingSampler(make_network(), runner, make_storage(tmp_path, n), config)
    sampler.init(params(n))
    start = threading.Barrier(n)

    def worker():
        start.wait()
        try:
            sampler.sample()
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=worker) for _ in range(n)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert len(runner.calls) == 1
    assert sampler.batch_runs == 1
    assert sampler.cursor == n
    assert sampler.state is SamplerState.EXHAUSTED
    assert sorted(drawn) == sorted(-50.0 - i for i in range(n))


def test_sample_writes_network(tmp_path):
    sampler, network = make_sampler(tmp_path, FakeRunner(batch(3)))
    sampler.init(params(3))
    sampler.sample()
    sampler.sample()

    g1 = network.get_generator("G1")
    g3 = network.get_generator("G3")
    assert g1.target_p == 51.0
    assert g1.terminal.p == -51.0
    assert g3.target_p == 21.0
    # disconnected generator untouched
    assert network.get_generator("G2").target_p == 50.0

    l1 = network.get_load("L1")
    assert l1.p0 == 91.0
    assert l1.terminal.p == 91.0
    assert l1.q0 == 13.0
    assert l1.terminal.q == 13.0


def test_generator_sign_convention(tmp_path):
    sampler, network = make_sampler(tmp_path, FakeRunner())
    sampler.init(params(1))
    sampler.put_sample_data_into_network(SampleData(generators_active_power=np.array([50.0, 1.0])))
    assert network.get_generator("G1").target_p == -50.0


def test_nan_generator_sample_is_skipped(tmp_path):
    sampler, network = make_sampler(tmp_path, FakeRunner())
    sampler.init(params(1))
    sampler.put_sample_data_into_network(SampleData(generators_active_power=np.array([math.nan, -35.0])))

    g1 = network.get_generator("G1")
    assert g1.target_p == 100.0
    assert g1.terminal.p == -100.0
    assert network.get_generator("G3").target_p == 35.0


def test_out_of_bounds_generator_is_logged_and_applied(tmp_path, caplog):
    sampler, network = make_sampler(tmp_path, FakeRunner())
    sampler.init(params(1))
    with caplog.at_level("WARNING", logger="gridsample_tools.model"):
        sampler.put_sample_data_into_network(SampleData(generators_active_power=np.array([-250.0, 5.0])))

    assert network.get_generator("G1").target_p == 250.0
    assert network.get_generator("G3").target_p == -5.0
    assert "> max P" in caplog.text
    assert "< min P" in caplog.text


@pytest.mark.parametrize("q, expected", [(1000.01, 10.0), (-1000.01, 10.0), (1000.0, 1000.0), (999.99, 999.99), (-999.99, -999.99)])
def test_reactive_power_threshold(tmp_path, q, expected):
    sampler, network = make_sampler(tmp_path, FakeRunner())
    sampler.init(params(1))
    sampler.put_sample_data_into_network(SampleData(loads_reactive_power=np.array([q, 1.0])))

    l1 = network.get_load("L1")
    assert l1.q0 == expected
    assert l1.terminal.q == expected
    assert network.get_load("L2").q0 == 1.0


def test_reactive_power_threshold_is_configurable(tmp_path):
    sampler, network = make_sampler(tmp_path, FakeRunner(), q_threshold=50.0)
    sampler.init(params(1))
    sampler.put_sample_data_into_network(SampleData(loads_reactive_power=np.array([60.0, 40.0])))
    assert network.get_load("L1").q0 == 10.0
    assert network.get_load("L2").q0 == 40.0


def test_nan_load_samples_are_skipped(tmp_path):
    sampler, network = make_sampler(tmp_path, FakeRunner())
    sampler.init(params(1))
    sampler.put_sample_data_into_network(SampleData(
        loads_active_power=np.array([math.nan, 30.0]),
        loads_reactive_power=np.array([math.nan, 3.0]),
    ))

    l1 = network.get_load("L1")
    assert (l1.p0, l1.q0) == (80.0, 10.0)
    l2 = network.get_load("L2")
    assert (l2.p0, l2.q0) == (30.0, 3.0)


def test_absent_tables_leave_network_unchanged(tmp_path):
    runner = FakeRunner({"PLOAD": np.array([[70.0, 15.0]])})
    sampler, network = make_sampler(tmp_path, runner)
    sampler.init(params(1))
    sampler.sample()

    assert network.get_generator("G1").target_p == 100.0
    assert network.get_load("L1").p0 == 70.0
    assert network.get_load("L1").q0 == 10.0


def test_close_removes_staged_file(tmp_path):
    with make_sampler(tmp_path, FakeRunner())[0] as sampler:
        sampler.init(params(1))
        staged = sampler.network_data_file
        assert staged.exists()
    assert not staged.exists()
