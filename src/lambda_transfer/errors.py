from typing import ClassVar

from lambda_transfer.models import ResultKind


class TransferError(Exception):
    """Base class for failures inside the transfer pipelines."""

    kind: ClassVar[ResultKind]


class HandlerResolutionError(TransferError):
    """Raised when a handler cannot be mapped to a source file name."""

    kind = ResultKind.UNSUPPORTED_RUNTIME


class UnsupportedRuntime(HandlerResolutionError):
    """Raised for runtimes whose source file extension is not known."""

    def __init__(self, runtime: str):
        super().__init__(
            f"Imports are not supported for runtime: {runtime}"
        )
        self.runtime = runtime


class InvalidHandler(HandlerResolutionError):
    """Raised for handler strings without a module part."""

    kind = ResultKind.INVALID_HANDLER

    def __init__(self, handler: str):
        super().__init__(f"Handler '{handler}' does not name a module")
        self.handler = handler


class FetchError(TransferError):
    """Raised when the remote artifact cannot be downloaded."""

    kind = ResultKind.FETCH_ERROR


class UnpackError(TransferError):
    """Raised when an archive cannot be extracted."""

    kind = ResultKind.UNPACK_ERROR


class ReadError(TransferError):
    """Raised when a local zip file cannot be read."""

    kind = ResultKind.READ_ERROR


class PackError(TransferError):
    """Raised when a directory cannot be packed into an archive."""

    kind = ResultKind.PACKAGING_ERROR


class BuildError(TransferError):
    """Raised when the external build fails."""

    kind = ResultKind.BUILD_ERROR


class DeployError(TransferError):
    """Raised when the remote code update fails."""

    kind = ResultKind.DEPLOY_ERROR


class FunctionImportError(TransferError):
    """Raised when the download/extract part of an import fails."""

    kind = ResultKind.IMPORT_ERROR

    def __init__(self, message: str, cause: ResultKind):
        super().__init__(message)
        self.cause = cause


class HandlerFileNotFound(TransferError):
    """Raised by post-import steps when the handler file is missing."""

    kind = ResultKind.HANDLER_NOT_FOUND

    def __init__(self, path):
        super().__init__(f"Handler file {path} not found in imported function.")
        self.path = path
