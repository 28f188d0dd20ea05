import logging
import os
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import override

from lambda_transfer.config import TransferConfig, load_config
from lambda_transfer.errors import FetchError, HandlerResolutionError
from lambda_transfer.handler import resolve_handler_file_name
from lambda_transfer.importer import ImportPipeline, default_import_location, destination_exists
from lambda_transfer.lambda_client import LambdaService
from lambda_transfer.models import FunctionDescriptor, TransferResult
from lambda_transfer.progress import ProgressSink
from lambda_transfer.uploader import UploadPipeline
from lambda_transfer.workspace import get_default_registry

LOGGER = logging.getLogger(__name__)


def setup_logging():
    """
    Setup logging based on environment variables
    """
    log_level = int(os.environ.get("LOG_LEVEL", 0))
    log_file = os.environ.get("LOG_FILE")

    logging.getLogger().handlers.clear()

    if log_level <= 0:
        level = logging.WARNING
    elif log_level == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    if log_file:
        logging.basicConfig(
            filename=log_file,
            level=level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            filemode="w",
        )
    else:
        logging.basicConfig(
            level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )


class ProgressBarSink(ProgressSink):
    """Feeds increments into a typer progress bar of length 100."""

    def __init__(self, bar):
        self.bar = bar
        self._carry = 0.0

    @override
    def report(self, increment: float, message: Optional[str] = None) -> None:
        # the bar only takes whole steps
        self._carry += increment
        whole = int(self._carry)
        if whole > 0:
            self._carry -= whole
            self.bar.update(whole)


def _lookup(service: LambdaService, function: str) -> FunctionDescriptor:
    try:
        return service.get_descriptor(function)
    except (FetchError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)


def _finish(result: TransferResult) -> None:
    for warning in result.warnings:
        typer.echo(f"Warning: {warning}", err=True)

    if result.succeeded:
        typer.echo(result.message)
        return
    if result.outcome == "Cancelled":
        typer.echo(result.message or "Cancelled.")
        raise typer.Exit(code=0)

    typer.echo(f"Error: {result.message}", err=True)
    raise typer.Exit(code=1)


app = typer.Typer(help="Import deployed Lambda functions and upload local code to them.")


@app.callback()
def main():
    setup_logging()


@app.command("resolve-handler")
def resolve_handler(
    runtime: str = typer.Argument(..., help="Lambda runtime, e.g. python3.8"),
    handler: str = typer.Argument(..., help="Dotted handler, e.g. app.handler"),
):
    """
    Print the source file name a handler points at.
    """
    try:
        typer.echo(resolve_handler_file_name(runtime, handler))
    except HandlerResolutionError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)


@app.command("import")
def import_function(
    function: str = typer.Argument(..., help="Function name or ARN"),
    parent: Path = typer.Option(Path("."), "--parent", help="Directory to import into."),
    region: Optional[str] = typer.Option(None, "--region", help="AWS region (overrides LAMBDA_TRANSFER_REGION)."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Overwrite an existing directory without asking."),
):
    """
    Download a Lambda function's code into <parent>/<function name>.
    """
    config: TransferConfig = load_config(region=region)
    service = LambdaService(region=config.region)
    descriptor = _lookup(service, function)

    destination = default_import_location(parent, descriptor)
    if destination_exists(destination) and not yes:
        confirmed = typer.confirm(
            f"Importing {descriptor.name} into: {destination}\n"
            f"Existing directory will be overwritten: {descriptor.name}\n"
            "Proceed with import?"
        )
        if not confirmed:
            LOGGER.info("Import of %s cancelled", descriptor.name)
            raise typer.Exit(code=0)

    pipeline = ImportPipeline(service, registry=get_default_registry(), config=config)
    with typer.progressbar(length=100, label=f"Importing {descriptor.name}") as bar:
        result = pipeline.import_function(descriptor, destination, ProgressBarSink(bar))

    _finish(result)


@app.command("upload")
def upload(
    function: str = typer.Argument(..., help="Function name or ARN"),
    zip_file: Optional[Path] = typer.Option(None, "--zip", help="Built function in a ZIP archive."),
    directory: Optional[Path] = typer.Option(None, "--dir", help="Built function in a directory."),
    source: Optional[Path] = typer.Option(None, "--build", help="Unbuilt function in a directory (sam build)."),
    region: Optional[str] = typer.Option(None, "--region", help="AWS region (overrides LAMBDA_TRANSFER_REGION)."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompts."),
):
    """
    Publish local code as a new version of a Lambda function.
    """
    selected = [option for option in (zip_file, directory, source) if option is not None]
    if len(selected) != 1:
        typer.echo("Error: pass exactly one of --zip, --dir or --build.", err=True)
        raise typer.Exit(code=1)

    config: TransferConfig = load_config(region=region)
    service = LambdaService(region=config.region)
    descriptor = _lookup(service, function)

    if not yes:
        confirmed = typer.confirm(
            f"This will immediately publish the selected code as a new version of Lambda: {descriptor.name}.\n\n"
            "The built code is not verified before upload.\n\nContinue?"
        )
        if not confirmed:
            LOGGER.info("Upload to %s cancelled", descriptor.name)
            raise typer.Exit(code=0)

    pipeline = UploadPipeline(service, registry=get_default_registry(), config=config)

    if zip_file is not None:
        result = pipeline.upload_from_zip_file(descriptor, zip_file)
    elif directory is not None:
        result = pipeline.upload_from_directory(descriptor, directory)
    else:
        def _confirm(handler_path: Path) -> bool:
            return yes or typer.confirm(
                f"Can't find a file corresponding to handler: {descriptor.handler} at filepath {handler_path}.\n\n"
                "This directory likely will not work with this function.\n\n"
                "Proceed with upload anyway?"
            )

        result = pipeline.upload_from_unbuilt_source(descriptor, source, confirm_missing_handler=_confirm)

    _finish(result)


if __name__ == "__main__":
    app()
