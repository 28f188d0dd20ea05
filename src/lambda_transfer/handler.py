from pathlib import Path

from lambda_transfer.errors import InvalidHandler, UnsupportedRuntime
from lambda_transfer.models import FunctionDescriptor, RuntimeFamily, get_runtime_family


RUNTIME_EXTENSIONS: dict[RuntimeFamily, str] = {
    RuntimeFamily.PYTHON: "py",
    RuntimeFamily.NODEJS: "js",
}


def resolve_handler_file_name(runtime: str, handler: str) -> str:
    """
    Converts a Lambda handler into a file name by stripping the entry-point
    symbol and appending the runtime's source extension.

    Args:
        runtime: Lambda runtime identifier, e.g. "python3.8".
        handler: Dotted handler, e.g. "src.app.handler".

    Returns:
        File name relative to the code root, e.g. "src.app.py".

    Raises:
        UnsupportedRuntime: Runtime family has no known extension.
        InvalidHandler: Handler has no module part to strip down to.
    """
    extension = RUNTIME_EXTENSIONS.get(get_runtime_family(runtime))
    if extension is None:
        raise UnsupportedRuntime(runtime)

    module = ".".join((handler or "").split(".")[:-1])
    if not module:
        raise InvalidHandler(handler)

    return f"{module}.{extension}"


def handler_file_path(descriptor: FunctionDescriptor, root: Path) -> Path:
    """Where the descriptor's handler file should live under `root`."""
    return Path(root) / resolve_handler_file_name(descriptor.runtime, descriptor.handler)
