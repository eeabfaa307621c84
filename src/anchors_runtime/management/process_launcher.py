"""Starting the Anchors server as a background Java process."""

import os
import re
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

import structlog

from ..config.settings import AnchorsSettings
from ..exceptions import LaunchError
from ..installation.artifact_resolver import ArtifactLocation
from ..installation.runtime_locator import RuntimeInfo
from .process_registry import ProcessRecord

logger = structlog.get_logger(__name__)

# Seconds the server idles without a client before powering itself off,
# so an interrupted session does not leave an orphaned JVM behind.
SERVER_IDLE_TIMEOUT = 30

CLIENT_VM_MAX_MEMORY = "1g"

_LOG_SUFFIXES = {"stdout": "out", "stderr": "err", "pid": "pid"}


@dataclass(frozen=True)
class LaunchSpec:
    """How to start a server. Algorithm parameters are passed through as-is."""

    ip: str = "localhost"
    port: int = 6666
    name: Optional[str] = None
    min_memory: Optional[str] = None
    max_memory: Optional[str] = None
    extra_classpath: Tuple[str, ...] = ()

    max_anchor_size: int = 0
    beam_size: int = 2
    delta: float = 0.1
    epsilon: float = 0.1
    tau: float = 0.9
    tau_discrepancy: float = 0.05
    init_sample_count: int = 1
    allow_suboptimal_steps: bool = True
    batch_size: int = 100

    def memory_args(self, client_vm: bool = False) -> List[str]:
        """JVM heap flags; a Client VM without an explicit max gets 1g."""
        max_memory = self.max_memory
        if max_memory is None and client_vm:
            max_memory = CLIENT_VM_MAX_MEMORY

        args = []
        if self.min_memory is not None:
            args.append(f"-Xms{self.min_memory}")
        if max_memory is not None:
            args.append(f"-Xmx{max_memory}")
        return args

    def algorithm_args(self) -> List[str]:
        params = [
            ("-maxAnchorSize", self.max_anchor_size),
            ("-beamSize", self.beam_size),
            ("-delta", self.delta),
            ("-epsilon", self.epsilon),
            ("-tau", self.tau),
            ("-tauDiscrepancy", self.tau_discrepancy),
            ("-initSampleCount", self.init_sample_count),
            ("-allowSuboptimalSteps", self.allow_suboptimal_steps),
            ("-batchSize", self.batch_size),
        ]
        args = []
        for flag, value in params:
            args.extend([flag, _format_arg(value)])
        return args


def _format_arg(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class ProcessLauncher:
    """Spawns the server jar and leaves it running in the background."""

    def __init__(self, settings: AnchorsSettings):
        self.settings = settings

    def log_path(self, kind: str) -> Path:
        """Per-user temp file for the server's stdout, stderr or the launcher pid.

        Names are deterministic so repeated launches overwrite earlier logs.
        """
        if kind not in _LOG_SUFFIXES:
            raise ValueError("kind must be one of 'stdout', 'stderr', or 'pid'")
        user = re.sub(r"[^A-Za-z0-9]", "_", self.settings.user)
        temp_dir = Path(self.settings.temp_dir or tempfile.gettempdir())
        return temp_dir / f"anchors_{user}_started_from_python.{_LOG_SUFFIXES[kind]}"

    def build_command(
        self, spec: LaunchSpec, artifact: ArtifactLocation, runtime: RuntimeInfo
    ) -> List[str]:
        """Compose the full argument vector, executable first."""
        command = [str(runtime.path)]
        command.extend(spec.memory_args(client_vm=runtime.client_vm))
        command.extend(["-jar", str(artifact.path)])
        command.extend(["-port", str(spec.port)])
        command.extend(["-timeout", str(SERVER_IDLE_TIMEOUT)])
        command.extend(spec.algorithm_args())
        return command

    def launch(
        self, spec: LaunchSpec, artifact: ArtifactLocation, runtime: RuntimeInfo
    ) -> ProcessRecord:
        """Start the server without waiting for it to listen.

        Args:
            spec: Launch configuration
            artifact: Server jar
            runtime: Java runtime to execute it with

        Returns:
            ProcessRecord: Pid, name and port of the started server

        Raises:
            LaunchError: If the process cannot be spawned or exits immediately
        """
        command = self.build_command(spec, artifact, runtime)
        stdout_log = self.log_path("stdout")
        stderr_log = self.log_path("stderr")
        stdout_log.parent.mkdir(parents=True, exist_ok=True)

        # Lets an outside observer tell which process started the server
        self.log_path("pid").write_text(f"{os.getpid()}\n")

        logger.info(
            "Note: In case of errors look at the following log files",
            stdout_log=str(stdout_log),
            stderr_log=str(stderr_log),
        )

        try:
            with open(stdout_log, "w") as out, open(stderr_log, "w") as err:
                process = subprocess.Popen(
                    command,
                    stdout=out,
                    stderr=err,
                    stdin=subprocess.DEVNULL,
                    start_new_session=True,  # Detach from parent session
                )
        except OSError as e:
            raise LaunchError(
                f"Failed to exec {runtime.path}: {e}",
                suggestion="Check that the Java runtime is executable",
                details={"command": command},
            ) from e

        return_code = process.poll()
        if return_code is not None and return_code != 0:
            raise LaunchError(
                f"Failed to exec {artifact.path} with return code={return_code}",
                suggestion=f"Check {stderr_log} for startup errors",
                details={"command": command, "return_code": return_code},
            )

        class_path = os.pathsep.join([str(artifact.path), *spec.extra_classpath])
        record = ProcessRecord(
            pid=process.pid,
            name=spec.name or "",
            port=spec.port,
            host=spec.ip,
            stdout_log=str(stdout_log),
            stderr_log=str(stderr_log),
            class_path=class_path,
        )
        logger.info("Anchors server process started", pid=process.pid, port=spec.port)
        return record
