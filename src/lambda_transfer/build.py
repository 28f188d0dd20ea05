"""
External build step for unbuilt function source.

The default invoker shells out to `sam build`. Pipelines only depend on the
BuildInvoker interface so tests (and other tools) can supply their own.
"""

import logging
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from typing_extensions import override

LOGGER = logging.getLogger(__name__)


@dataclass
class BuildRequest:
    template_path: Path
    build_dir: Path
    base_dir: Path
    use_container: bool = False
    skip_pull_image: bool = True


@dataclass
class BuildResult:
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def is_success(self) -> bool:
        return self.exit_code == 0


class BuildInvoker(ABC):
    @abstractmethod
    def build(self, request: BuildRequest) -> BuildResult:
        """Build the template's resources into request.build_dir."""
        pass


class SamCliBuildInvoker(BuildInvoker):
    """
    Runs `sam build` as a subprocess.
    """

    def __init__(self, executable: str = "sam", timeout: float = 900.0):
        self.executable = executable
        self.timeout = timeout

    def command(self, request: BuildRequest) -> List[str]:
        cmd = [
            self.executable,
            "build",
            "--template", str(request.template_path),
            "--build-dir", str(request.build_dir),
            "--base-dir", str(request.base_dir),
        ]
        if request.use_container:
            cmd.append("--use-container")
        if request.skip_pull_image:
            cmd.append("--skip-pull-image")
        return cmd

    @override
    def build(self, request: BuildRequest) -> BuildResult:
        cmd = self.command(request)
        if not Path(request.base_dir).is_dir():
            return BuildResult(1, stderr=f"Build base directory not found: {request.base_dir}")

        LOGGER.info("Running %s", " ".join(cmd))

        try:
            completed = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                cwd=str(request.base_dir),
            )
        except FileNotFoundError:
            return BuildResult(127, stderr=f"Build executable not found: {self.executable}")
        except subprocess.TimeoutExpired:
            return BuildResult(124, stderr=f"sam build timed out after {self.timeout:.0f}s")
        except OSError as exc:
            return BuildResult(126, stderr=f"Cannot run {self.executable}: {exc}")

        if completed.returncode != 0:
            LOGGER.error(
                "sam build failed (exit %d): %s",
                completed.returncode,
                completed.stderr.strip(),
            )
        return BuildResult(completed.returncode, completed.stdout, completed.stderr)


def describe_failure(result: BuildResult, limit: Optional[int] = 500) -> str:
    """Short human-readable reason for a failed build."""
    detail = (result.stderr or result.stdout or "").strip()
    if limit is not None and len(detail) > limit:
        detail = "..." + detail[-limit:]
    if detail:
        return f"Build failed (exit {result.exit_code}): {detail}"
    return f"Build failed (exit {result.exit_code})"
