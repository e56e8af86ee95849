"""
Command runner — execute host commands and capture their output.

This is the most fundamental building block: every real adapter that
shells out (apt, mysql, systemd, apache) goes through a CommandRunner.
It has two entry points, matching the probe/mutation split:

    probe()  read-only query; returns the completed process and raises
             PreconditionCheckFailed only if the command could not run
    run()    mutation; returns a Receipt and never raises
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
import time
from collections.abc import Mapping, Sequence

from stackconverge.core.errors import PreconditionCheckFailed
from stackconverge.core.models.receipt import Receipt

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 1800
PROBE_TIMEOUT = 60


class CommandRunner:
    """Run argv-style commands (never through a shell).

    Args:
        timeout: Default timeout in seconds for mutations.
        env: Extra environment variables for every command.
    """

    def __init__(
        self,
        timeout: int = DEFAULT_TIMEOUT,
        env: Mapping[str, str] | None = None,
    ):
        self.timeout = timeout
        self._env = dict(env or {})

    def _environment(self, extra: Mapping[str, str] | None) -> dict[str, str]:
        env = dict(os.environ)
        env.update(self._env)
        if extra:
            env.update(extra)
        return env

    def probe(
        self,
        args: Sequence[str],
        *,
        input: str | None = None,
        timeout: int = PROBE_TIMEOUT,
    ) -> subprocess.CompletedProcess[str]:
        """Run a read-only query command.

        A non-zero exit status is returned to the caller, who knows what
        it means for that tool. Only failures to run at all are raised.
        """
        command = shlex.join(args)
        logger.debug("Probing: %s", command)
        try:
            return subprocess.run(
                list(args),
                input=input,
                capture_output=True,
                text=True,
                timeout=timeout,
                env=self._environment(None),
            )
        except FileNotFoundError as e:
            raise PreconditionCheckFailed(f"Command not found: {args[0]}") from e
        except subprocess.TimeoutExpired as e:
            raise PreconditionCheckFailed(
                f"Probe timed out after {timeout}s: {command}"
            ) from e
        except OSError as e:
            raise PreconditionCheckFailed(f"Cannot run {command}: {e}") from e

    def run(
        self,
        args: Sequence[str],
        *,
        adapter: str,
        operation: str,
        input: str | None = None,
        timeout: int | None = None,
        env: Mapping[str, str] | None = None,
    ) -> Receipt:
        """Run a mutating command and return a Receipt."""
        timeout = timeout or self.timeout
        command = shlex.join(args)
        logger.debug("Executing: %s", command)
        start = time.monotonic()

        try:
            result = subprocess.run(
                list(args),
                input=input,
                capture_output=True,
                text=True,
                timeout=timeout,
                env=self._environment(env),
            )
        except FileNotFoundError:
            return Receipt.failure(
                adapter=adapter,
                operation=operation,
                error=f"Command not found: {args[0]}",
                command=command,
            )
        except subprocess.TimeoutExpired:
            return Receipt.failure(
                adapter=adapter,
                operation=operation,
                error=f"Command timed out after {timeout}s",
                command=command,
                metadata={"timeout": timeout},
            )
        except OSError as e:
            return Receipt.failure(
                adapter=adapter,
                operation=operation,
                error=f"Command execution error: {e}",
                command=command,
            )

        elapsed_ms = int((time.monotonic() - start) * 1000)
        output = result.stdout.strip()
        stderr = result.stderr.strip()

        if result.returncode == 0:
            return Receipt.success(
                adapter=adapter,
                operation=operation,
                output=output,
                command=command,
                return_code=0,
                duration_ms=elapsed_ms,
                metadata={"stderr": stderr} if stderr else {},
            )
        return Receipt.failure(
            adapter=adapter,
            operation=operation,
            error=stderr or f"Command exited with code {result.returncode}",
            output=output,
            command=command,
            return_code=result.returncode,
            duration_ms=elapsed_ms,
        )
