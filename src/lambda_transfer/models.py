"""
Data model shared by the import and upload pipelines.

FunctionDescriptor is the immutable snapshot of a remote function that every
pipeline call receives. TransferResult is the single value a pipeline entry
point hands back to its caller, tagged with a ResultKind.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RuntimeFamily(str, Enum):
    PYTHON = "python"
    NODEJS = "nodejs"
    OTHER = "other"


def get_runtime_family(runtime: Optional[str]) -> RuntimeFamily:
    """
    Classify a Lambda runtime identifier (e.g. "python3.8", "nodejs12.x").
    """
    normalized = (runtime or "").strip().lower()
    if normalized.startswith("python"):
        return RuntimeFamily.PYTHON
    if normalized.startswith("nodejs"):
        return RuntimeFamily.NODEJS
    return RuntimeFamily.OTHER


class ResultKind(str, Enum):
    SUCCEEDED = "Succeeded"
    CANCELLED = "Cancelled"
    UNSUPPORTED_RUNTIME = "UnsupportedRuntime"
    INVALID_HANDLER = "InvalidHandler"
    HANDLER_NOT_FOUND = "HandlerNotFound"
    IMPORT_ERROR = "ImportError"
    FETCH_ERROR = "FetchError"
    UNPACK_ERROR = "UnpackError"
    READ_ERROR = "ReadError"
    PACKAGING_ERROR = "PackagingError"
    BUILD_ERROR = "BuildError"
    DEPLOY_ERROR = "DeployError"


class FunctionDescriptor(BaseModel):
    """
    Identifies a deployed Lambda function.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    arn: str
    handler: str
    runtime: str
    region: Optional[str] = None

    @field_validator("name", "arn", mode="after")
    @classmethod
    def check_not_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value

    @property
    def runtime_family(self) -> RuntimeFamily:
        return get_runtime_family(self.runtime)

    @classmethod
    def from_configuration(
        cls, configuration: Dict[str, Any], region: Optional[str] = None
    ) -> "FunctionDescriptor":
        """
        Build a descriptor from a Lambda FunctionConfiguration mapping, as
        returned by GetFunction / GetFunctionConfiguration.
        """
        try:
            name = configuration["FunctionName"]
            arn = configuration["FunctionArn"]
        except KeyError as exc:
            raise ValueError(
                f"Function configuration is missing '{exc.args[0]}'"
            ) from exc

        return cls(
            name=name,
            arn=arn,
            handler=configuration.get("Handler") or "",
            runtime=configuration.get("Runtime") or "",
            region=region or region_from_arn(arn),
        )


def region_from_arn(arn: str) -> Optional[str]:
    # arn:aws:lambda:<region>:<account>:function:<name>
    parts = arn.split(":")
    if len(parts) >= 4 and parts[0] == "arn" and parts[3]:
        return parts[3]
    return None


class TransferResult(BaseModel):
    """Outcome of one import or upload attempt."""

    kind: ResultKind
    function_name: str
    message: str = ""
    cause: Optional[ResultKind] = None
    destination: Optional[Path] = None
    warnings: List[str] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.kind is ResultKind.SUCCEEDED

    @property
    def outcome(self) -> str:
        """Coarse Succeeded / Failed / Cancelled label."""
        if self.kind is ResultKind.SUCCEEDED:
            return "Succeeded"
        if self.kind is ResultKind.CANCELLED:
            return "Cancelled"
        return "Failed"
