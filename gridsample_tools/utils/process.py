"""
# External Process Execution

This module provides the process execution facility used to run external
tools: a command description, an execution report, a runner interface and its
subprocess-based implementation, and a scoped working directory.

## Classes

- `Command`: Program, arguments and declared input/output files of a run
- `ExecutionReport`: Outcome of a run
- `ProcessRunner`: Abstract runner interface
- `SubprocessRunner`: Runner executing commands with `subprocess.run`

## Example Usage

```python
from gridsample_tools.utils.process import Command, SubprocessRunner, working_directory

cmd = Command(id="echo", program="/bin/echo", args=["hello"])

with working_directory("example_", debug=False) as workdir:
    report = SubprocessRunner(timeout=60).execute(cmd, workdir, env={})
    report.log()
```
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
import logging
import os
import shutil
import subprocess
import tempfile


logger = logging.getLogger(__name__)


@dataclass
class Command:
    """
    Description of a single external program run.

    Attributes:
        id (str): Identifier of the command, used in logs and reports.
        program (str): Path of the executable.
        args (list[str]): Positional arguments.
        input_files (list[str]): Files the program expects in its working
            directory, relative to it.
        output_files (list[str]): Files the program is expected to produce in
            its working directory, relative to it.
    """
    id: str
    program: str
    args: list[str] = field(default_factory=list)
    input_files: list[str] = field(default_factory=list)
    output_files: list[str] = field(default_factory=list)

    def to_argv(self) -> list[str]:
        return [str(self.program)] + [str(a) for a in self.args]


@dataclass
class ExecutionReport:
    """
    Outcome of a command execution.

    Attributes:
        command_id (str): Identifier of the executed command.
        returncode (int): Exit code of the process.
        stdout (str): Captured standard output, possibly empty.
        stderr (str): Captured standard error, possibly empty.
        missing_outputs (list[str]): Declared output files not found after the run.
    """
    command_id: str
    returncode: int
    stdout: str = ""
    stderr: str = ""
    missing_outputs: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def log(self):
        """Log the outcome, at error level when the command failed."""
        if self.ok:
            logger.debug(f"Command {self.command_id} completed")
        else:
            logger.error(
                f"Command {self.command_id} failed with returncode {self.returncode}: "
                f"{self.stderr.strip()[-2000:]}"
            )
        if self.missing_outputs:
            logger.warning(
                f"Command {self.command_id} did not produce: {', '.join(self.missing_outputs)}"
            )


class ProcessRunner(ABC):
    """
    Interface of the facility executing external commands.

    `execute` blocks until the command completes. Timeout and cancellation
    are the runner's concern, configured by whoever builds it.
    """

    @abstractmethod
    def execute(
        self,
        command: Command,
        working_dir: Path,
        env: dict[str, str] = None
    ) -> ExecutionReport:
        """
        Execute the command in the given working directory.

        Args:
            command (Command): Command to execute.
            working_dir (Path): Directory holding the command's input files,
                where its output files are written.
            env (dict[str, str], optional): Variables added to the process
                environment.

        Returns:
            ExecutionReport: Outcome of the execution.
        """
        pass


class SubprocessRunner(ProcessRunner):
    """
    Runner executing commands as local subprocesses.

    Attributes:
        timeout (float, optional): Seconds after which the process is killed
            and `subprocess.TimeoutExpired` is raised. None waits forever.
        capture_output (bool): Capture stdout/stderr into the report instead
            of discarding them.
    """

    def __init__(self, timeout: float = None, capture_output: bool = True):
        self.timeout = timeout
        self.capture_output = capture_output

    def execute(self, command, working_dir, env=None):
        """
        Raises:
            FileNotFoundError: If a declared input file is missing from the
                working directory, or the program does not exist.
            subprocess.TimeoutExpired: If the configured timeout expires.
        """
        working_dir = Path(working_dir)
        for name in command.input_files:
            if not (working_dir / name).exists():
                raise FileNotFoundError(
                    f"Input file {name} of command {command.id} not found in {working_dir}"
                )

        process_env = dict(os.environ)
        if env:
            process_env.update(env)

        logger.debug(f"Executing command {command.id}: {' '.join(command.to_argv())}")

        stream = subprocess.PIPE if self.capture_output else subprocess.DEVNULL
        p = subprocess.run(
            command.to_argv(),
            cwd=working_dir,
            env=process_env,
            stdout=stream,
            stderr=stream,
            text=True,
            timeout=self.timeout
        )

        return ExecutionReport(
            command_id=command.id,
            returncode=p.returncode,
            stdout=p.stdout or "",
            stderr=p.stderr or "",
            missing_outputs=[
                name for name in command.output_files
                if not (working_dir / name).exists()
            ]
        )


@contextmanager
def working_directory(prefix: str, debug: bool = False, parent: str | Path = None):
    """
    Create a scoped working directory.

    Args:
        prefix (str): Prefix of the directory name.
        debug (bool, optional): Keep the directory on exit for inspection.
            Defaults to False.
        parent (str | Path, optional): Directory to create it in. Defaults to
            the system temporary directory.

    Yields:
        Path: The working directory.
    """
    workdir = Path(tempfile.mkdtemp(prefix=prefix, dir=parent))
    try:
        yield workdir
    finally:
        if debug:
            logger.info(f"Keeping working directory {workdir}")
        else:
            shutil.rmtree(workdir, ignore_errors=True)
