"""
Import pipeline: pull a deployed Lambda function's code into a local directory.

    IDLE -> FETCHING -> EXTRACTING -> SUCCEEDED
               |           |
               +-----------+--> FAILED

Download and extraction failures are hard failures (IMPORT_ERROR). Anything
that happens afterwards (post-import steps such as checking for the handler
file or writing a debug configuration) only adds warnings: the code is on disk
and the import still counts as succeeded.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from lambda_transfer.archive import unpack_archive
from lambda_transfer.config import TransferConfig
from lambda_transfer.errors import (
    FetchError,
    FunctionImportError,
    HandlerFileNotFound,
    UnpackError,
)
from lambda_transfer.fetcher import fetch_artifact
from lambda_transfer.handler import handler_file_path
from lambda_transfer.lambda_client import LambdaService
from lambda_transfer.models import FunctionDescriptor, ResultKind, TransferResult
from lambda_transfer.progress import ProgressSink, as_tracker
from lambda_transfer.workspace import TemporaryWorkspaceRegistry, get_default_registry

LOGGER = logging.getLogger(__name__)

DOWNLOAD_FILE_NAME = "function.zip"

# percentage of the caller's progress budget per step (sums to 100)
LOOKUP_SHARE = 10
FETCH_SHARE = 60
EXTRACT_SHARE = 30

PostImportStep = Callable[[FunctionDescriptor, Path], None]


class ImportState(str, Enum):
    IDLE = "Idle"
    FETCHING = "Fetching"
    EXTRACTING = "Extracting"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"


def default_import_location(parent: Path, descriptor: FunctionDescriptor) -> Path:
    """Functions are imported into <parent>/<function name>."""
    return Path(parent) / descriptor.name


def destination_exists(destination: Path) -> bool:
    """True when an import would overwrite an existing directory."""
    return Path(destination).exists()


def locate_handler_file(descriptor: FunctionDescriptor, destination: Path) -> None:
    """
    Post-import step: make sure the handler file exists in the imported code.
    """
    path = handler_file_path(descriptor, destination)
    if not path.is_file():
        raise HandlerFileNotFound(path)
    LOGGER.info("Handler file: %s", path)


class ImportPipeline:
    """
    Fetch -> extract orchestration for one function at a time.

    Args:
        lambda_service: Remote function service (GetFunction).
        registry: Cleanup registry owning the temporary download directory.
        config: Download settings.
        post_import_steps: Callables run after a successful extraction.
    """

    def __init__(
        self,
        lambda_service: LambdaService,
        registry: Optional[TemporaryWorkspaceRegistry] = None,
        config: Optional[TransferConfig] = None,
        post_import_steps: Sequence[PostImportStep] = (locate_handler_file,),
    ):
        self.lambda_service = lambda_service
        self.registry = registry or get_default_registry()
        self.config = config or TransferConfig()
        self.post_import_steps: List[PostImportStep] = list(post_import_steps)
        self.state = ImportState.IDLE

    def import_function(
        self,
        descriptor: FunctionDescriptor,
        destination: Path,
        progress: Optional[ProgressSink] = None,
    ) -> TransferResult:
        """
        Download the function's deployment package and extract it into
        `destination`, replacing existing files.

        The caller is expected to have confirmed the destination already.
        """
        tracker = as_tracker(progress)
        destination = Path(destination)
        self.state = ImportState.IDLE

        try:
            self._download_and_extract(descriptor, destination, tracker)
        except FunctionImportError as err:
            self.state = ImportState.FAILED
            return TransferResult(
                kind=ResultKind.IMPORT_ERROR,
                cause=err.cause,
                function_name=descriptor.name,
                message=str(err),
                destination=destination,
            )

        self.state = ImportState.SUCCEEDED
        warnings = self._run_post_import_steps(descriptor, destination)
        return TransferResult(
            kind=ResultKind.SUCCEEDED,
            function_name=descriptor.name,
            message=f"Imported {descriptor.name} into {destination}",
            destination=destination,
            warnings=warnings,
        )

    def _download_and_extract(self, descriptor: FunctionDescriptor, destination: Path, tracker) -> None:
        try:
            self.state = ImportState.FETCHING
            temp_dir = self.registry.create_directory(self.config.temp_prefix)
            download_location = temp_dir / DOWNLOAD_FILE_NAME

            code_location = self.lambda_service.get_code_location(descriptor.arn)
            scale = tracker.budget / 100.0
            tracker.report(LOOKUP_SHARE * scale, "Located function code")

            fetch_artifact(
                code_location,
                download_location,
                progress=tracker.child(FETCH_SHARE * scale),
                chunk_size=self.config.download_chunk_size,
                timeout=self.config.download_timeout,
            )

            self.state = ImportState.EXTRACTING
            unpack_archive(
                download_location,
                destination,
                overwrite=True,
                progress=tracker.child(EXTRACT_SHARE * scale),
            )
        except (FetchError, UnpackError) as err:
            LOGGER.error("Import of %s failed: %s", descriptor.arn, err)
            raise FunctionImportError(
                f"Error importing Lambda function {descriptor.arn}: {err}",
                cause=err.kind,
            ) from err
        except OSError as err:
            # temp workspace could not be created
            LOGGER.error("Import of %s failed: %s", descriptor.arn, err)
            raise FunctionImportError(
                f"Error importing Lambda function {descriptor.arn}: {err}",
                cause=ResultKind.FETCH_ERROR,
            ) from err

    def _run_post_import_steps(self, descriptor: FunctionDescriptor, destination: Path) -> List[str]:
        warnings: List[str] = []
        for step in self.post_import_steps:
            try:
                step(descriptor, destination)
            except Exception as err:
                # the code is already on disk; report and keep going
                message = str(err) or type(err).__name__
                LOGGER.warning("Post-import step %s failed: %s", getattr(step, "__name__", step), message)
                warnings.append(message)
        return warnings
