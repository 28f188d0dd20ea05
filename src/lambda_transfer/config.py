import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator


ENV_PREFIX = "LAMBDA_TRANSFER_"
DEFAULT_TEMP_PREFIX = "lambda-transfer-"
DEFAULT_RESOURCE_NAME = "tempResource"
DEFAULT_CHUNK_SIZE = 1024 * 1024


class TransferConfig(BaseModel):
    """
    Settings shared by the import and upload pipelines.
    """

    region: Optional[str] = None
    temp_prefix: str = DEFAULT_TEMP_PREFIX
    download_chunk_size: int = DEFAULT_CHUNK_SIZE
    download_timeout: float = 60.0
    sam_executable: str = "sam"
    build_timeout: float = 900.0
    wait_for_update: bool = True
    resource_name: str = DEFAULT_RESOURCE_NAME

    @field_validator("temp_prefix", "resource_name", mode="before")
    @classmethod
    def validate_path_names(cls, name: str) -> str:
        if "/" in name or "\\" in name:
            raise NameError("cannot put a path separator in a directory name")
        return name

    @field_validator(
        "download_chunk_size", "download_timeout", "build_timeout", mode="after"
    )
    @classmethod
    def check_positive(cls, value):
        if value <= 0:
            raise ValueError("must be positive")
        return value

    @field_validator("region", mode="after")
    @classmethod
    def check_empty_region(cls, value: Optional[str]) -> Optional[str]:
        if value == "":
            return None
        return value


def _env(name: str) -> Optional[str]:
    return os.environ.get(ENV_PREFIX + name)


def _parse_bool(raw: str) -> bool:
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def load_config(**overrides) -> TransferConfig:
    """
    Build a TransferConfig from the environment (and a .env file if present).

    Keyword arguments that are not None win over environment values.
    """
    load_dotenv()

    values = {}
    region = _env("REGION") or os.environ.get("AWS_REGION") or os.environ.get("AWS_DEFAULT_REGION")
    if region:
        values["region"] = region

    raw_fields = {
        "temp_prefix": _env("TEMP_PREFIX"),
        "download_chunk_size": _env("CHUNK_SIZE"),
        "download_timeout": _env("DOWNLOAD_TIMEOUT"),
        "sam_executable": _env("SAM_EXECUTABLE"),
        "build_timeout": _env("BUILD_TIMEOUT"),
        "resource_name": _env("RESOURCE_NAME"),
    }
    for key, raw in raw_fields.items():
        if raw:
            values[key] = raw

    wait = _env("WAIT_FOR_UPDATE")
    if wait is not None:
        values["wait_for_update"] = _parse_bool(wait)

    values.update({key: value for key, value in overrides.items() if value is not None})
    return TransferConfig(**values)
