import unittest

from pydantic import ValidationError

from lambda_transfer.models import (
    FunctionDescriptor,
    ResultKind,
    RuntimeFamily,
    TransferResult,
    region_from_arn,
)

FN1_ARN = "arn:aws:lambda:us-east-1:123456789012:function:fn1"


class TestFunctionDescriptor(unittest.TestCase):
    def test_from_configuration(self):
        descriptor = FunctionDescriptor.from_configuration(
            {
                "FunctionName": "fn1",
                "FunctionArn": FN1_ARN,
                "Handler": "index.main",
                "Runtime": "nodejs18.x",
                "MemorySize": 128,
            }
        )
        self.assertEqual(descriptor.name, "fn1")
        self.assertEqual(descriptor.region, "us-east-1")
        self.assertEqual(descriptor.runtime_family, RuntimeFamily.NODEJS)

    def test_explicit_region_wins(self):
        descriptor = FunctionDescriptor.from_configuration(
            {"FunctionName": "fn1", "FunctionArn": FN1_ARN}, region="eu-west-1"
        )
        self.assertEqual(descriptor.region, "eu-west-1")
        self.assertEqual(descriptor.handler, "")
        self.assertEqual(descriptor.runtime_family, RuntimeFamily.OTHER)

    def test_missing_identity(self):
        with self.assertRaises(ValueError):
            FunctionDescriptor.from_configuration({"FunctionArn": FN1_ARN})
        with self.assertRaises(ValueError):
            FunctionDescriptor.from_configuration({"FunctionName": "fn1"})

    def test_empty_name_rejected(self):
        with self.assertRaises(ValidationError):
            FunctionDescriptor(name=" ", arn=FN1_ARN, handler="app.handler", runtime="python3.8")

    def test_descriptor_is_immutable(self):
        descriptor = FunctionDescriptor(name="fn1", arn=FN1_ARN, handler="app.handler", runtime="python3.8")
        with self.assertRaises(ValidationError):
            descriptor.handler = "other.handler"

    def test_region_from_arn(self):
        self.assertEqual(region_from_arn(FN1_ARN), "us-east-1")
        self.assertIsNone(region_from_arn("fn1"))
        self.assertIsNone(region_from_arn("arn:aws:lambda::123:function:fn1"))


class TestTransferResult(unittest.TestCase):
    def test_outcomes(self):
        self.assertEqual(TransferResult(kind=ResultKind.SUCCEEDED, function_name="fn1").outcome, "Succeeded")
        self.assertEqual(TransferResult(kind=ResultKind.CANCELLED, function_name="fn1").outcome, "Cancelled")
        for kind in ResultKind:
            if kind in (ResultKind.SUCCEEDED, ResultKind.CANCELLED):
                continue
            result = TransferResult(kind=kind, function_name="fn1")
            self.assertEqual(result.outcome, "Failed")
            self.assertFalse(result.succeeded)

    def test_import_error_keeps_cause(self):
        result = TransferResult(
            kind=ResultKind.IMPORT_ERROR,
            function_name="fn1",
            cause=ResultKind.FETCH_ERROR,
        )
        self.assertEqual(result.kind.value, "ImportError")
        self.assertEqual(result.cause, ResultKind.FETCH_ERROR)
        self.assertEqual(result.warnings, [])


if __name__ == "__main__":
    unittest.main()
