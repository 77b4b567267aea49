"""
Payload sink that feeds generated payloads to an external command.
"""

import logging
import subprocess
from pathlib import Path
from typing import Callable, Optional, Sequence, Union

logger = logging.getLogger(__name__)


class CommandSink:
    """
    Run one command per payload.

    When ``output_file`` is set the payload is written there first (the file
    is rewritten every iteration so the command can read the current payload).
    When ``placeholder`` is set every occurrence of it in the argument list is
    replaced by the payload. A failed write, a command that cannot be started
    or a non-zero exit status stops generation.
    """

    def __init__(
            self,
            command: Sequence[str] = (),
            placeholder: str = "",
            output_file: Optional[Union[str, Path]] = None,
            echo: Optional[Callable[[bytes], None]] = None,
            timeout: Optional[float] = None
    ):
        self.command = list(command)
        self.placeholder = placeholder
        self.output_file = Path(output_file) if output_file else None
        self.echo = echo
        self.timeout = timeout
        self.runs = 0

    def build_args(self, payload: bytes) -> list:
        """Argument list with the placeholder substituted."""
        if not self.placeholder:
            return list(self.command)
        text = payload.decode("utf-8", errors="surrogateescape")
        return [arg.replace(self.placeholder, text) for arg in self.command]

    def __call__(self, payload: bytes) -> bool:
        if self.output_file:
            try:
                self.output_file.write_bytes(payload)
            except OSError as e:
                logger.error(f"Cannot write payload to {self.output_file}: {e}")
                return False

        if not self.command:
            if not self.output_file and self.echo:
                self.echo(payload)
            return True

        args = self.build_args(payload)
        logger.info(f"Running {args[0]!r} {args[1:]!r}")
        try:
            completed = subprocess.run(args, timeout=self.timeout)
        except (OSError, ValueError, subprocess.TimeoutExpired) as e:
            logger.error(f"Command failed to run: {e}")
            return False
        self.runs += 1

        if completed.returncode != 0:
            logger.error(f"Command exited with status {completed.returncode}")
            return False
        return True
