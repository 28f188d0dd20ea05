"""
Minimal SAM template used as the build manifest for unbuilt source.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Union

import yaml

from lambda_transfer.config import DEFAULT_RESOURCE_NAME

TEMPLATE_FORMAT_VERSION = "2010-09-09"
SERVERLESS_TRANSFORM = "AWS::Serverless-2016-10-31"
FUNCTION_RESOURCE_TYPE = "AWS::Serverless::Function"


@dataclass(frozen=True)
class BuildManifest:
    """Single-function build descriptor."""

    handler: str
    runtime: str
    code_uri: str
    resource_name: str = DEFAULT_RESOURCE_NAME

    def to_template(self) -> Dict[str, Any]:
        return {
            "AWSTemplateFormatVersion": TEMPLATE_FORMAT_VERSION,
            "Transform": SERVERLESS_TRANSFORM,
            "Resources": {
                self.resource_name: {
                    "Type": FUNCTION_RESOURCE_TYPE,
                    "Properties": {
                        "Handler": self.handler,
                        "CodeUri": self.code_uri,
                        "Runtime": self.runtime,
                    },
                },
            },
        }


def write_manifest(manifest: BuildManifest, path: Union[str, os.PathLike]) -> Path:
    """Write the manifest as a YAML template and return its path."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "w", encoding="utf-8") as handle:
        yaml.safe_dump(manifest.to_template(), handle, sort_keys=False)
    return target
