"""
Pipeline executor.

Runs a synthesized PipelineGraph through the ffmpeg binary. Diagnostic output
is spooled to a temporary file so a runaway encoder never grows memory; only
its tail is kept for error reporting. There is no retry: the same graph on the
same inputs fails the same way.
"""

import logging
import subprocess
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .errors import ExecutionError
from .graph import PipelineGraph

logger = logging.getLogger(__name__)

MAX_DIAGNOSTIC_CHARS = 2000


@dataclass
class ExecutionResult:
    """Outcome of a successful encoder run."""
    output_path: Path
    elapsed: float
    diagnostics: str


def read_tail(stream, limit: int = MAX_DIAGNOSTIC_CHARS) -> str:
    """Read at most the last ``limit`` characters of a binary file object."""
    stream.seek(0, 2)
    size = stream.tell()
    # utf-8 needs up to 4 bytes per character
    stream.seek(max(0, size - limit * 4))
    text = stream.read().decode("utf-8", errors="replace")
    return text[-limit:]


def execute(
    graph: PipelineGraph,
    ffmpeg_path: str = "ffmpeg",
    timeout: Optional[float] = None,
    request_id: str = "-",
) -> ExecutionResult:
    """
    Run the encoder for ``graph``.

    Args:
        graph: Validated pipeline graph
        ffmpeg_path: Encoder binary
        timeout: Seconds before the process is killed (None = no limit)
        request_id: Correlation id for log lines

    Returns:
        ExecutionResult

    Raises:
        ExecutionError: Non-zero exit, timeout or missing binary
    """
    args = [ffmpeg_path, *graph.to_args()]
    logger.info(
        f"[{request_id}] Running ffmpeg: {len(graph.inputs)} inputs, "
        f"{len(graph.stages)} stages -> {graph.output_path}"
    )
    logger.debug(f"[{request_id}] Command: {' '.join(args)}")

    start = time.monotonic()
    with tempfile.TemporaryFile() as stderr:
        try:
            completed = subprocess.run(
                args,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=stderr,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            diagnostics = read_tail(stderr)
            logger.error(f"[{request_id}] ffmpeg timed out after {timeout}s")
            raise ExecutionError(
                f"Encoder timed out after {timeout:g}s",
                diagnostics=diagnostics,
                timed_out=True,
            )
        except FileNotFoundError:
            logger.error(f"[{request_id}] ffmpeg binary not found: {ffmpeg_path}")
            raise ExecutionError(f"Encoder binary not found: {ffmpeg_path}")

        diagnostics = read_tail(stderr)

    elapsed = time.monotonic() - start

    if completed.returncode != 0:
        logger.error(
            f"[{request_id}] ffmpeg exited with code {completed.returncode} "
            f"after {elapsed:.1f}s"
        )
        raise ExecutionError(
            f"Encoder exited with code {completed.returncode}",
            diagnostics=diagnostics,
            returncode=completed.returncode,
        )

    logger.info(f"[{request_id}] ffmpeg finished in {elapsed:.1f}s")
    return ExecutionResult(
        output_path=Path(graph.output_path),
        elapsed=elapsed,
        diagnostics=diagnostics,
    )
