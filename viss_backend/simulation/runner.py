"""
Simulator invocation.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Tuple
import os
import subprocess
import time

from ..contracts.base import Error, ErrorCode, Result
from ..contracts.events import AuditLogEntry, AuditEventType


@dataclass
class SimulationConfig:
    """Where the simulator lives and what it leaves behind."""
    workdir: str = "."
    executable: str = "./build/viss-release"
    config_file: str = "test_config1.txt"
    event_log_file: str = "dev_eventlog.csv"
    report_file: str = "output.txt"
    parallel_flag: str = "0"
    mode: str = "opt"
    extra_args: Tuple[str, ...] = field(default_factory=lambda: ("-o",))
    seed_env_var: str = "MNRM_DEBUG_SEED"
    timeout_seconds: Optional[float] = None

    @staticmethod
    def from_env(environ: Optional[Mapping[str, str]] = None) -> SimulationConfig:
        env = os.environ if environ is None else environ
        config = SimulationConfig()
        config.workdir = env.get("VISS_WORKDIR") or config.workdir
        config.executable = env.get("VISS_SIMULATOR") or config.executable
        return config

    def path(self, name: str) -> str:
        return os.path.join(self.workdir, name)

    @property
    def config_path(self) -> str:
        return self.path(self.config_file)

    @property
    def event_log_path(self) -> str:
        return self.path(self.event_log_file)

    @property
    def report_path(self) -> str:
        return self.path(self.report_file)


@dataclass(frozen=True)
class SimulationReport:
    """What one simulator run produced."""
    return_code: int
    output: str
    duration_ms: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.return_code == 0


class SimulatorRunner:
    """
    Runs the simulator once per call.

    The report (stdout+stderr) is written to the report file and
    returned. A non-zero exit code is still a successful Result: the
    report is what the caller wants to see. Only failing to launch or
    to read back the report is a failure.
    """

    def __init__(self, config: Optional[SimulationConfig] = None):
        self._config = config or SimulationConfig()
        self._audit_log: List[AuditLogEntry] = []

    @property
    def config(self) -> SimulationConfig:
        return self._config

    def command(self) -> List[str]:
        cfg = self._config
        return [cfg.executable, cfg.config_file, cfg.parallel_flag, cfg.mode, *cfg.extra_args]

    def run(self, seed: Optional[int] = None) -> Result:
        cfg = self._config
        env = dict(os.environ)
        if seed is not None:
            env[cfg.seed_env_var] = str(seed)

        cmd = self.command()
        started = time.perf_counter()
        try:
            with open(cfg.report_path, "w", encoding="utf-8") as report:
                completed = subprocess.run(
                    cmd,
                    cwd=cfg.workdir,
                    env=env,
                    stdout=report,
                    stderr=subprocess.STDOUT,
                    timeout=cfg.timeout_seconds,
                    check=False
                )
        except (OSError, subprocess.SubprocessError) as e:
            self._log_audit("simulator_failed", AuditEventType.ERROR,
                            metadata=(("command", " ".join(cmd)), ("reason", str(e))))
            return Result.failure(Error.create(
                ErrorCode.SIMULATOR_FAILED, str(e), command=" ".join(cmd)
            ))
        duration_ms = (time.perf_counter() - started) * 1000

        try:
            with open(cfg.report_path, "r", encoding="utf-8", errors="replace") as report:
                output = report.read()
        except OSError as e:
            return Result.failure(Error.create(
                ErrorCode.REPORT_PARSE_FAILED, str(e), path=cfg.report_path
            ))

        self._log_audit(
            "simulator_finished",
            metadata=(
                ("command", " ".join(cmd)),
                ("return_code", completed.returncode),
                ("seed", seed if seed is not None else "none"),
            )
        )
        return Result.success(SimulationReport(
            return_code=completed.returncode,
            output=output,
            duration_ms=duration_ms
        ))

    def _log_audit(
        self,
        action: str,
        event_type: AuditEventType = AuditEventType.SIMULATION,
        metadata: tuple = ()
    ):
        self._audit_log.append(AuditLogEntry.create(
            event_type=event_type,
            layer="simulation",
            action=action,
            metadata=metadata
        ))

    def drain_audit_log(self) -> List[AuditLogEntry]:
        entries, self._audit_log = self._audit_log, []
        return entries
