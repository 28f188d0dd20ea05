"""
Upload pipeline: package local code and publish it as the function's new code.

Three packaging strategies converge on deploy():
    A  prebuilt zip file      read bytes             -> deploy
    B  prebuilt directory     pack                   -> deploy
    C  unbuilt source         manifest, build, pack  -> deploy

Failures before deploy are packaging failures (READ_ERROR, PACKAGING_ERROR,
BUILD_ERROR); failures at or after deploy are DEPLOY_ERROR.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Callable, Optional, Union

from lambda_transfer.archive import pack_directory
from lambda_transfer.build import BuildInvoker, BuildRequest, SamCliBuildInvoker, describe_failure
from lambda_transfer.config import TransferConfig
from lambda_transfer.errors import (
    BuildError,
    HandlerResolutionError,
    ReadError,
    TransferError,
)
from lambda_transfer.handler import handler_file_path
from lambda_transfer.lambda_client import LambdaService
from lambda_transfer.manifest import BuildManifest, write_manifest
from lambda_transfer.models import FunctionDescriptor, ResultKind, TransferResult
from lambda_transfer.progress import ProgressSink
from lambda_transfer.workspace import TemporaryWorkspaceRegistry, get_default_registry

LOGGER = logging.getLogger(__name__)

TEMPLATE_FILE_NAME = "template.yaml"
BUILD_OUTPUT_DIR_NAME = "output"

ConfirmMissingHandler = Callable[[Path], bool]
PathLike = Union[str, os.PathLike]


class UploadPipeline:
    """
    Args:
        lambda_service: Remote function service (UpdateFunctionCode).
        registry: Cleanup registry owning build workspaces.
        build_invoker: External build collaborator for strategy C.
        config: Build and deploy settings.
    """

    def __init__(
        self,
        lambda_service: LambdaService,
        registry: Optional[TemporaryWorkspaceRegistry] = None,
        build_invoker: Optional[BuildInvoker] = None,
        config: Optional[TransferConfig] = None,
    ):
        self.lambda_service = lambda_service
        self.config = config or TransferConfig()
        self.registry = registry or get_default_registry()
        self.build_invoker = build_invoker or SamCliBuildInvoker(
            executable=self.config.sam_executable,
            timeout=self.config.build_timeout,
        )

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------

    def upload_from_zip_bytes(self, descriptor: FunctionDescriptor, archive: bytes) -> TransferResult:
        return self._run(descriptor, lambda: self.deploy(descriptor, archive))

    def upload_from_zip_file(self, descriptor: FunctionDescriptor, zip_path: PathLike) -> TransferResult:
        """Strategy A: upload an existing zip archive as-is."""

        def _steps() -> None:
            try:
                archive = Path(zip_path).read_bytes()
            except OSError as err:
                raise ReadError(f"Failed to read {zip_path}: {err}") from err
            self.deploy(descriptor, archive)

        return self._run(descriptor, _steps)

    def upload_from_directory(
        self,
        descriptor: FunctionDescriptor,
        directory: PathLike,
        progress: Optional[ProgressSink] = None,
    ) -> TransferResult:
        """Strategy B: zip a prebuilt directory and upload it."""

        def _steps() -> None:
            archive = pack_directory(directory, progress=progress)
            self.deploy(descriptor, archive)

        return self._run(descriptor, _steps)

    def upload_from_unbuilt_source(
        self,
        descriptor: FunctionDescriptor,
        source_dir: PathLike,
        confirm_missing_handler: Optional[ConfirmMissingHandler] = None,
        progress: Optional[ProgressSink] = None,
    ) -> TransferResult:
        """
        Strategy C: build `source_dir` with the build collaborator, then zip
        the built function and upload it.

        When the handler file cannot be found in `source_dir`,
        `confirm_missing_handler` is asked whether to go on; without a
        callback, or on a negative answer, the upload is cancelled before
        anything is built.
        """
        source = Path(source_dir)

        try:
            handler_path = handler_file_path(descriptor, source)
        except HandlerResolutionError as err:
            LOGGER.info("Cannot check handler for runtime %s, skipping check: %s", descriptor.runtime, err)
        else:
            if not handler_path.is_file():
                LOGGER.warning(
                    "Can't find a file corresponding to handler %s at %s",
                    descriptor.handler,
                    handler_path,
                )
                if confirm_missing_handler is None or not confirm_missing_handler(handler_path):
                    LOGGER.info("Handler file not found. Upload of %s cancelled.", descriptor.name)
                    return TransferResult(
                        kind=ResultKind.CANCELLED,
                        function_name=descriptor.name,
                        message=f"Handler file {handler_path} not found; upload cancelled.",
                    )

        def _steps() -> None:
            built = self.build(descriptor, source)
            archive = pack_directory(built, progress=progress)
            self.deploy(descriptor, archive)

        return self._run(descriptor, _steps)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def build(self, descriptor: FunctionDescriptor, source: Path) -> Path:
        """
        Generate a manifest for `source`, build it and return the directory
        holding the built function.
        """
        try:
            temp_dir = self.registry.create_directory(self.config.temp_prefix)
            manifest = BuildManifest(
                handler=descriptor.handler,
                runtime=descriptor.runtime,
                code_uri=str(source.resolve()),
                resource_name=self.config.resource_name,
            )
            template_path = write_manifest(manifest, temp_dir / TEMPLATE_FILE_NAME)
        except OSError as err:
            raise BuildError(f"Failed to prepare build workspace: {err}") from err

        build_dir = temp_dir / BUILD_OUTPUT_DIR_NAME
        try:
            result = self.build_invoker.build(
                BuildRequest(
                    template_path=template_path,
                    build_dir=build_dir,
                    base_dir=source,
                    use_container=False,
                    skip_pull_image=True,
                )
            )
        except OSError as err:
            raise BuildError(f"Build could not run: {err}") from err

        if not result.is_success:
            raise BuildError(describe_failure(result))

        # the build writes into a folder named after the resource
        built = build_dir / manifest.resource_name
        if not built.is_dir():
            raise BuildError(f"Build output not found: {built}")
        return built

    def deploy(self, descriptor: FunctionDescriptor, archive: bytes) -> None:
        LOGGER.info("Uploading %d bytes to %s", len(archive), descriptor.name)
        self.lambda_service.update_function_code(
            descriptor.name,
            archive,
            publish=True,
            wait=self.config.wait_for_update,
        )

    def _run(self, descriptor: FunctionDescriptor, steps: Callable[[], None]) -> TransferResult:
        try:
            steps()
        except TransferError as err:
            LOGGER.error("Upload to %s failed (%s): %s", descriptor.name, err.kind.value, err)
            return TransferResult(
                kind=err.kind,
                function_name=descriptor.name,
                message=str(err),
            )

        return TransferResult(
            kind=ResultKind.SUCCEEDED,
            function_name=descriptor.name,
            message=f"Published new code to {descriptor.name}",
        )
