"""
Thin wrapper over the boto3 Lambda client.

Only the calls the pipelines need: look up a function (descriptor and code
location) and replace its code.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import boto3
from boto3.session import Session
from botocore.exceptions import BotoCoreError, ClientError

from lambda_transfer.errors import DeployError, FetchError
from lambda_transfer.models import FunctionDescriptor

LOGGER = logging.getLogger(__name__)


class LambdaService:
    """
    Remote function service used by the import and upload pipelines.

    Args:
        client: Pre-built boto3 "lambda" client. Created lazily when omitted.
        region: Region for the lazily created client.
    """

    def __init__(self, client: Optional[Any] = None, region: Optional[str] = None):
        self._client = client
        self.region = region

    @property
    def client(self) -> Any:
        if self._client is None:
            session: Session = boto3.session.Session()
            self._client = session.client("lambda", region_name=self.region)
        return self._client

    def get_function(self, function: str) -> Dict[str, Any]:
        """GetFunction by name or ARN."""
        return self.client.get_function(FunctionName=function)

    def get_descriptor(self, function: str) -> FunctionDescriptor:
        try:
            response = self.get_function(function)
        except (BotoCoreError, ClientError) as err:
            raise FetchError(f"Failed to look up Lambda function {function}: {err}") from err
        return FunctionDescriptor.from_configuration(
            response.get("Configuration") or {}, region=self.region
        )

    def get_code_location(self, function_arn: str) -> str:
        """
        Return the presigned URL of the function's deployment package.

        Raises:
            FetchError: The lookup failed or returned no code location.
        """
        try:
            response = self.get_function(function_arn)
        except (BotoCoreError, ClientError) as err:
            raise FetchError(f"Failed to look up Lambda function {function_arn}: {err}") from err

        location = (response.get("Code") or {}).get("Location")
        if not location:
            raise FetchError(f"Lambda function {function_arn} has no downloadable code location.")
        return location

    def update_function_code(
        self,
        function_name: str,
        archive: bytes,
        publish: bool = True,
        wait: bool = True,
    ) -> Dict[str, Any]:
        """
        Replace the function's code with `archive` and publish a new version.

        Raises:
            DeployError: The update call or the wait for it failed.
        """
        try:
            response = self.client.update_function_code(
                FunctionName=function_name,
                ZipFile=archive,
                Publish=publish,
            )
            if wait:
                waiter = self.client.get_waiter("function_updated")
                waiter.wait(FunctionName=function_name)
        except (BotoCoreError, ClientError) as err:
            raise DeployError(f"Failed to update Lambda function {function_name}: {err}") from err

        LOGGER.info("Updated Lambda Function: %s", function_name)
        return response
