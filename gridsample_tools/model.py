"""
# Sampler Interface and Monte Carlo Implementation

This module provides the abstract sampler interface and the Monte Carlo
sampler, which perturbs the generators and loads of a network with values
drawn from a forecast errors analysis.

## Classes

- `Sampler`: Abstract base class defining the interface for all samplers
- `MontecarloSampler`: Sampler backed by the external `mcla` sampling tool

## Lifecycle

```
UNINITIALIZED --init()--> INITIALIZED --sample()--> SAMPLING --last sample()--> EXHAUSTED
```

The sampling tool is run once, on the first `sample()` call, and produces
every requested sample at once. Each call then writes the next sample into the
network's working state. Once every sample has been drawn any further call
raises `SamplesExhaustedError`.

If the tool run fails the sampler moves to `FAILED` and every later call
raises `SamplerError` without running the tool again.

## Example Usage

```python
from gridsample_tools import MontecarloSampler
from gridsample_tools.forecast import FileForecastErrorsDataStorage
from gridsample_tools.montecarlo import MontecarloSamplerParameters, TimeHorizon
from gridsample_tools.utils.process import SubprocessRunner

with MontecarloSampler(network, SubprocessRunner(), FileForecastErrorsDataStorage("/data/fea")) as sampler:
    sampler.init(MontecarloSamplerParameters(TimeHorizon.DACF, "fea1", n_samples=10))
    for _ in range(10):
        sampler.sample()
        # ... run a load flow on the network's working state
```
"""

# Config, data and collaborators
from gridsample_tools.exceptions import (
    SamplerError,
    SamplerNotReadyError,
    SamplerStateError,
    SamplesExhaustedError,
    SamplingResultsError,
)
from gridsample_tools.forecast import ForecastErrorsDataStorage, ForecastErrorsAnalyzerParameters
from gridsample_tools.montecarlo.config import MontecarloSamplerConfig
from gridsample_tools.montecarlo.data import (
    MontecarloSamplerParameters,
    SampleData,
    SampledData,
    SamplerState,
    SamplingNetworkData,
)
from gridsample_tools.montecarlo.matfile import read_sampled_data, write_sampling_network_data
from gridsample_tools.network import (
    Network,
    get_connected_generators_ids,
    get_connected_loads_ids,
    get_generators_ids,
    get_loads_ids,
)
from gridsample_tools.utils.process import Command, ProcessRunner, working_directory

from abc import abstractmethod, ABC
from pathlib import Path
import logging
import math
import os
import shutil
import tempfile
import threading


logger = logging.getLogger(__name__)

WORKING_DIR_PREFIX = "itesla_montecarlosampler_"
MCS_INPUT_FILE_PREFIX = "mcsamplerinput_"
MCS_OUTPUT_FILE_NAME = "mcsampleroutput.mat"
MCS_CSV_OUTPUT_FILE_NAME = "printSamples.csv"
MCS_COMMAND_ID = "matmcs"


class Sampler(ABC):
    """
    Abstract base class for network samplers.

    A sampler is initialized once with the parameters of a sampling request,
    then each call to `sample` writes a new sample into the working state of
    its network.

    Attributes:
        network (Network): The network whose working state is sampled.
    """

    def __init__(self, network: Network):
        if network is None:
            raise ValueError("network is None")
        self.network = network

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @property
    def version(self) -> str | None:
        return None

    @abstractmethod
    def init(self, parameters: MontecarloSamplerParameters) -> None:
        """
        Prepare the sampler for a sampling request.

        Args:
            parameters (MontecarloSamplerParameters): Time horizon, forecast
                errors analysis and number of samples to draw.
        """
        pass

    @abstractmethod
    def sample(self) -> None:
        """Write the next sample into the network's current working state."""
        pass


class MontecarloSampler(Sampler):
    """
    Monte Carlo sampler backed by the external `mcla` sampling tool.

    At `init`, the sampler validates the request against the forecast errors
    storage, captures the ordered generator and load ids of the network and
    stages the network data file the tool reads. On the first `sample` call,
    it runs the tool once to get the whole batch of samples, then each call
    writes one sample into the network:

    - Generators: the sampled active power follows the load sign convention,
      so the target P is set to its opposite and the terminal P to the value
      itself. NaN samples are skipped; values outside [min P, max P] are
      logged but still applied.
    - Loads: P0 and terminal P take the sampled active power unless it is NaN.
      A sampled reactive power whose magnitude exceeds `q_threshold` is
      discarded, keeping the previous Q; otherwise Q0 and terminal Q take it
      unless it is NaN.

    Values are written field by field; a failure midway leaves the network
    partially updated.

    Attributes:
        network (Network): The sampled network.
        process_runner (ProcessRunner): Facility running the sampling tool.
        forecast_errors_data_storage (ForecastErrorsDataStorage): Source of
            the forecast errors data.
        config (MontecarloSamplerConfig): Sampler configuration.
        q_threshold (float): Reactive power sanity threshold.
        batch_runs (int): Number of sampling tool runs so far (0 or 1).
    """

    def __init__(
        self,
        network: Network,
        process_runner: ProcessRunner,
        forecast_errors_data_storage: ForecastErrorsDataStorage,
        config: MontecarloSamplerConfig = None
    ):
        """
        Initialize the MontecarloSampler instance.

        Args:
            network (Network): The network to sample.
            process_runner (ProcessRunner): Runner used to execute the
                sampling tool. Timeout and cancellation are its concern.
            forecast_errors_data_storage (ForecastErrorsDataStorage): Storage
                of the forecast errors analyses.
            config (MontecarloSamplerConfig, optional): Sampler configuration.
                Defaults to `MontecarloSamplerConfig.load()`.

        Raises:
            ValueError: If a collaborator is None.
        """
        super().__init__(network)
        if process_runner is None:
            raise ValueError("process runner is None")
        if forecast_errors_data_storage is None:
            raise ValueError("forecast errors data storage is None")

        self.process_runner = process_runner
        self.forecast_errors_data_storage = forecast_errors_data_storage
        self.config = config if config is not None else MontecarloSamplerConfig.load()
        self.q_threshold = self.config.q_threshold

        logger.info(f"Network {network.id}: {self.config}")

        self.time_horizon = None
        self.fe_analysis_id: str = None
        self.n_samples: int = 0
        self.fea_params: ForecastErrorsAnalyzerParameters = None

        self.generators_ids: list[str] = []
        self.loads_ids: list[str] = []
        self.connected_generators_ids: list[str] = []
        self.connected_loads_ids: list[str] = []

        self.network_data_file: Path = None
        self.sampled_data: SampledData = None
        self.batch_runs = 0

        self._cursor = 0
        self._state = SamplerState.UNINITIALIZED
        self._lock = threading.RLock()

    @property
    def name(self) -> str:
        return "RSE Montecarlo Sampler"

    @property
    def state(self) -> SamplerState:
        return self._state

    @property
    def cursor(self) -> int:
        """Number of samples drawn so far, i.e. the row index of the next one."""
        return self._cursor

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def init(self, parameters: MontecarloSamplerParameters) -> None:
        """
        Validate the sampling request and stage the network data file.

        The generator and load ids are captured in network iteration order,
        which must be the order used when the historical data of the forecast
        errors analysis was built. That order is a contract with the analysis
        and cannot be verified here.

        Args:
            parameters (MontecarloSamplerParameters): Sampling request.

        Raises:
            ValueError: If parameters is None.
            SamplerStateError: If the sampler was already initialized.
            SamplerNotReadyError: If the storage has no offline samples data
                for the analysis and horizon, or the requested number of
                samples is not in (0, available samples].
        """
        if parameters is None:
            raise ValueError("montecarlo sampler parameters value is None")
        with self._lock:
            if self._state is not SamplerState.UNINITIALIZED:
                raise SamplerStateError(
                    f"Network {self.network.id}: sampler already initialized (state {self._state.value})"
                )

            self.time_horizon = parameters.time_horizon
            self.fe_analysis_id = parameters.fe_analysis_id
            self.n_samples = parameters.n_samples

            storage = self.forecast_errors_data_storage
            if not storage.is_forecast_offline_samples_data_available(self.fe_analysis_id, self.time_horizon):
                logger.error(
                    f"No forecast offline samples data available, for {self.network.id} network, "
                    f"{self.time_horizon.horizon_name} time horizon."
                )
                raise SamplerNotReadyError(
                    f"Montecarlo sampler not ready to be used: No forecast offline samples data available, "
                    f"for {self.network.id} network, {self.time_horizon.horizon_name} time horizon."
                )

            self.fea_params = storage.get_parameters(self.fe_analysis_id, self.time_horizon)
            available = self.fea_params.n_samples
            logger.info(
                f"Network {self.network.id}: forecast errors analysis - Id: {self.fe_analysis_id}, "
                f"time horizon: {self.time_horizon.horizon_name}, number of samples available: {available}, "
                f"number of samples requested: {self.n_samples}."
            )
            if self.n_samples <= 0 or self.n_samples > available:
                logger.error(
                    f"Network {self.network.id}: Not enough/incorrect number of samples available from FEA "
                    f"(id {self.fe_analysis_id}, time horizon {self.time_horizon.horizon_name}): "
                    f"requested {self.n_samples} samples, available {available} samples"
                )
                raise SamplerNotReadyError(
                    f"Network {self.network.id}: Not enough/incorrect number of samples available from FEA "
                    f"(Id: {self.fe_analysis_id}, time horizon: {self.time_horizon.horizon_name}): "
                    f"requested {self.n_samples} samples, available {available} samples."
                )

            self.generators_ids = get_generators_ids(self.network)
            self.connected_generators_ids = get_connected_generators_ids(self.network)
            self.loads_ids = get_loads_ids(self.network)
            self.connected_loads_ids = get_connected_loads_ids(self.network)

            logger.info(f"Preparing sampling network data for {self.network.id} network")
            sampling_network_data = SamplingNetworkData.from_network(
                self.network, self.generators_ids, self.loads_ids
            )

            self.config.tmp_dir.mkdir(parents=True, exist_ok=True)
            fd, name = tempfile.mkstemp(
                prefix=f"{MCS_INPUT_FILE_PREFIX}{self._network_file_id()}_{self.time_horizon.label}_",
                suffix=".mat",
                dir=self.config.tmp_dir
            )
            os.close(fd)
            self.network_data_file = Path(name)
            logger.info(
                f"Writing sampling network data for {self.network.id} network into mat file {self.network_data_file}"
            )
            write_sampling_network_data(self.network_data_file, sampling_network_data)

            self._state = SamplerState.INITIALIZED

    def sample(self) -> None:
        """
        Write the next sample into the network's current working state.

        Raises:
            SamplerStateError: If the sampler has not been initialized.
            SamplesExhaustedError: If every requested sample has been drawn.
            SamplingResultsError: If the sampling tool results cannot be read.
            SamplerError: If an earlier sampling tool run failed.
        """
        logger.info(
            f"Getting new sample for network {self.network.id}, working state id: {self.network.working_state_id}"
        )
        sample = self.next_sample()
        self.put_sample_data_into_network(sample)

    def next_sample(self) -> SampleData:
        """
        Draw the next sample of the batch, running the sampling tool first if needed.

        Returns:
            SampleData: The sampled values; a quantity the tool did not sample is None.

        Raises:
            SamplerStateError: If the sampler has not been initialized.
            SamplesExhaustedError: If every requested sample has been drawn.
            SamplingResultsError: If the sampling tool results cannot be read.
            SamplerError: If an earlier sampling tool run failed.
        """
        with self._lock:
            if self._state is SamplerState.UNINITIALIZED:
                raise SamplerStateError(
                    f"Network {self.network.id}: sampler not initialized, call init first"
                )

            if self._state is SamplerState.FAILED:
                raise SamplerError(
                    f"Network {self.network.id}: sampling tool run failed, no samples available "
                    f"- FEA id: {self.fea_params.fe_analysis_id}"
                )

            if self._cursor >= self.n_samples:
                self._state = SamplerState.EXHAUSTED
                logger.error(
                    f"Network {self.network.id}: reached max number of samples: {self.n_samples} "
                    f"- FEA id: {self.fea_params.fe_analysis_id}"
                )
                raise SamplesExhaustedError(
                    f"Network {self.network.id}: reached max number of samples: {self.n_samples} "
                    f"- FEA id: {self.fea_params.fe_analysis_id}"
                )

            if self.sampled_data is None:
                logger.info(
                    f"Network {self.network.id}: executing Montecarlo sampler, getting {self.n_samples} samples"
                )
                try:
                    self.sampled_data = self.run_sampler()
                except Exception:
                    # a batch is produced at most once
                    self._state = SamplerState.FAILED
                    raise
                self._state = SamplerState.SAMPLING

            index = self._cursor
            logger.debug(f"Network {self.network.id} -> current sample index: {index}")
            try:
                sample = self.sampled_data.get_sample(index)
            except IndexError as e:
                raise SamplingResultsError(
                    f"Network {self.network.id}: sampler results have no sample at index {index}"
                ) from e

            self._cursor += 1
            if self._cursor >= self.n_samples:
                self._state = SamplerState.EXHAUSTED

            return sample

    def _network_file_id(self) -> str:
        return self.network.id.replace(" ", "_")

    def create_command(self, forecast_errors_data_file: Path, local_network_data_file: Path) -> Command:
        """
        Build the sampling tool command.

        The positional arguments are: network data file, forecast errors data
        file (name when copied to the working directory, absolute path
        otherwise), output file name, number of samples, then the sign,
        centering and full dependence options.

        Args:
            forecast_errors_data_file (Path): Forecast errors data file.
            local_network_data_file (Path): Network data file in the working directory.

        Returns:
            Command: The command to execute in the working directory.
        """
        copy_fe_file = self.config.copy_fe_file
        args = [
            local_network_data_file.name,
            forecast_errors_data_file.name if copy_fe_file else str(forecast_errors_data_file.absolute()),
            MCS_OUTPUT_FILE_NAME,
            str(self.n_samples),
            str(self.config.option_sign),
            str(self.config.centering),
            str(self.config.full_dependence),
        ]
        input_files = [local_network_data_file.name]
        if copy_fe_file:
            input_files.append(forecast_errors_data_file.name)

        return Command(
            id=MCS_COMMAND_ID,
            program=str(self.config.program),
            args=args,
            input_files=input_files,
            output_files=[MCS_OUTPUT_FILE_NAME, MCS_CSV_OUTPUT_FILE_NAME],
        )

    def run_sampler(self) -> SampledData:
        """
        Run the sampling tool once and read the batch of samples it produces.

        The tool runs in a dedicated working directory, removed afterwards
        unless the configuration's debug flag is set.

        Returns:
            SampledData: The batch, one row per requested sample.

        Raises:
            SamplingResultsError: If the result file is missing or unreadable.
        """
        with working_directory(WORKING_DIR_PREFIX, debug=self.config.debug) as workdir:
            if self.config.copy_fe_file:
                fe_data_file = workdir / (
                    f"{MCS_INPUT_FILE_PREFIX}forecast_offline_samples_{self.time_horizon.label}.mat"
                )
                self.forecast_errors_data_storage.get_forecast_offline_samples_file(
                    self.fe_analysis_id, self.time_horizon, fe_data_file
                )
            else:
                fe_data_file = Path(
                    self.forecast_errors_data_storage.get_forecast_offline_samples_file_path(
                        self.fe_analysis_id, self.time_horizon
                    )
                )

            local_network_data_file = workdir / f"{MCS_INPUT_FILE_PREFIX}{self._network_file_id()}.mat"
            shutil.copyfile(self.network_data_file, local_network_data_file)

            logger.info(f"Running montecarlo sampler on {self.network.id} network, asking for {self.n_samples} samples")
            command = self.create_command(fe_data_file, local_network_data_file)
            report = self.process_runner.execute(command, workdir, self.config.create_env())
            self.batch_runs += 1
            report.log()

            logger.debug(f"Network {self.network.id}: retrieving sampling results from file {MCS_OUTPUT_FILE_NAME}")
            try:
                return read_sampled_data(workdir / MCS_OUTPUT_FILE_NAME)
            except Exception as e:
                raise SamplingResultsError(
                    f"Network {self.network.id}: cannot read sampling results "
                    f"(command {command.id}, returncode {report.returncode}): {e}"
                ) from e

    def put_sample_data_into_network(self, sample: SampleData) -> None:
        """
        Write a sample into the network's working state.

        Args:
            sample (SampleData): Values for the connected generators and
                loads, in the order captured at `init`.
        """
        network = self.network
        state_id = network.working_state_id
        prefix = f"Network {network.id} state {state_id}"
        logger.debug(f"Storing new sample in the working state {state_id} of {network.id} network")

        total_p_gen_before = total_p_gen_after = 0.0
        total_p_load_before = total_p_load_after = 0.0
        total_q_load_before = total_q_load_after = 0.0

        if sample.generators_active_power is not None:
            logger.debug(
                f"Network {network.id}: connected network generators = {len(self.connected_generators_ids)} "
                f"- sampled generators = {len(sample.generators_active_power)}"
            )
            for generator_id, new_p in zip(self.connected_generators_ids, sample.generators_active_power):
                new_p = float(new_p)
                generator = network.get_generator(generator_id)
                old_p = generator.terminal.p
                total_p_gen_before += old_p
                total_p_gen_after += new_p
                logger.debug(
                    f"{prefix}: generator {generator_id} - P:{old_p} -> P:{new_p} "
                    f"- limits[{generator.min_p},{generator.max_p}]"
                )
                if generator.max_p < -new_p:
                    logger.warning(
                        f"{prefix}: generator {generator_id} - new P ({-new_p}) > max P ({generator.max_p})"
                    )
                if generator.min_p > -new_p:
                    logger.warning(
                        f"{prefix}: generator {generator_id} - new P ({-new_p}) < min P ({generator.min_p})"
                    )
                if not math.isnan(new_p):
                    generator.target_p = -new_p
                    generator.terminal.p = new_p
                else:
                    logger.debug(f"{prefix}: new sampled P for generator {generator_id} is NaN: skipping assignment")

        loads_p = sample.loads_active_power
        loads_q = sample.loads_reactive_power
        if loads_p is not None or loads_q is not None:
            logger.debug(
                f"Network {network.id}: connected network loads = {len(self.connected_loads_ids)} "
                f"- sampled loads = [{len(loads_p) if loads_p is not None else 0},"
                f"{len(loads_q) if loads_q is not None else 0}]"
            )
            for i, load_id in enumerate(self.connected_loads_ids):
                load = network.get_load(load_id)

                if loads_p is not None and i < len(loads_p):
                    new_p = float(loads_p[i])
                    old_p = load.terminal.p
                    total_p_load_before += old_p
                    total_p_load_after += new_p
                    logger.debug(f"{prefix}: load {load_id} - P:{old_p} -> P:{new_p}")
                    if not math.isnan(new_p):
                        load.p0 = new_p
                        load.terminal.p = new_p
                    else:
                        logger.debug(f"{prefix}: new sampled P for load {load_id} is NaN: skipping assignment")

                if loads_q is not None and i < len(loads_q):
                    new_q = float(loads_q[i])
                    old_q = load.terminal.q
                    total_q_load_before += old_q
                    # Q computed from P can be far off; it must stay consistent for the load flow to converge
                    if abs(new_q) > self.q_threshold:
                        total_q_load_after += old_q
                        logger.warning(
                            f"{prefix}: load {load_id} - |new Q({new_q})| > {self.q_threshold}: "
                            f"skipping assignment and keeping old Q({old_q})"
                        )
                    else:
                        total_q_load_after += new_q
                        logger.debug(f"{prefix}: load {load_id} - Q:{old_q} -> Q:{new_q}")
                        if not math.isnan(new_q):
                            load.q0 = new_q
                            load.terminal.q = new_q
                        else:
                            logger.debug(f"{prefix}: new sampled Q for load {load_id} is NaN: skipping assignment")

        logger.debug(f"{prefix}: gen total P:{total_p_gen_before} -> total P:{total_p_gen_after}")
        logger.debug(f"{prefix}: load total P:{total_p_load_before} -> total P:{total_p_load_after}")
        logger.debug(f"{prefix}: load total Q:{total_q_load_before} -> total Q:{total_q_load_after}")

    def close(self) -> None:
        """Remove the staged network data file."""
        with self._lock:
            if self.network_data_file is not None and self.network_data_file.exists():
                logger.debug(f"Removing sampling network data file {self.network_data_file}")
                self.network_data_file.unlink()
