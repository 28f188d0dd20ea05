import shutil
import subprocess
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from lambda_transfer.build import (
    BuildRequest,
    BuildResult,
    SamCliBuildInvoker,
    describe_failure,
)


class TestSamCliBuildInvoker(unittest.TestCase):
    def setUp(self):
        self.base_dir = Path(tempfile.mkdtemp())
        self.request = BuildRequest(
            template_path=Path("/work/template.yaml"),
            build_dir=Path("/work/output"),
            base_dir=self.base_dir,
        )
        self.invoker = SamCliBuildInvoker(executable="sam", timeout=30)

    def tearDown(self):
        shutil.rmtree(self.base_dir)

    def test_command_line(self):
        self.assertEqual(
            self.invoker.command(self.request),
            [
                "sam", "build",
                "--template", "/work/template.yaml",
                "--build-dir", "/work/output",
                "--base-dir", str(self.base_dir),
                "--skip-pull-image",
            ],
        )

    def test_command_line_with_container(self):
        self.request.use_container = True
        self.request.skip_pull_image = False
        cmd = self.invoker.command(self.request)
        self.assertIn("--use-container", cmd)
        self.assertNotIn("--skip-pull-image", cmd)

    @patch("lambda_transfer.build.subprocess.run")
    def test_build_success(self, mock_run):
        mock_run.return_value = subprocess.CompletedProcess(
            args=[], returncode=0, stdout="Build Succeeded", stderr=""
        )

        result = self.invoker.build(self.request)

        self.assertTrue(result.is_success)
        self.assertEqual(result.stdout, "Build Succeeded")
        args, kwargs = mock_run.call_args
        self.assertEqual(args[0], self.invoker.command(self.request))
        self.assertEqual(kwargs["cwd"], str(self.base_dir))
        self.assertEqual(kwargs["timeout"], 30)
        self.assertTrue(kwargs["capture_output"])

    @patch("lambda_transfer.build.subprocess.run")
    def test_build_failure_exit_code(self, mock_run):
        mock_run.return_value = subprocess.CompletedProcess(
            args=[], returncode=1, stdout="", stderr="Error: PythonPipBuilder failed"
        )
        result = self.invoker.build(self.request)
        self.assertFalse(result.is_success)
        self.assertEqual(result.exit_code, 1)
        self.assertIn("PythonPipBuilder", result.stderr)

    @patch("lambda_transfer.build.subprocess.run")
    def test_missing_executable(self, mock_run):
        mock_run.side_effect = FileNotFoundError("sam")
        result = self.invoker.build(self.request)
        self.assertEqual(result.exit_code, 127)
        self.assertFalse(result.is_success)

    @patch("lambda_transfer.build.subprocess.run")
    def test_executable_not_runnable(self, mock_run):
        mock_run.side_effect = PermissionError(13, "Permission denied", "sam")
        result = self.invoker.build(self.request)
        self.assertEqual(result.exit_code, 126)
        self.assertFalse(result.is_success)
        self.assertIn("Permission denied", result.stderr)

    @patch("lambda_transfer.build.subprocess.run")
    def test_missing_base_directory(self, mock_run):
        self.request.base_dir = self.base_dir / "missing"
        result = self.invoker.build(self.request)
        self.assertFalse(result.is_success)
        self.assertIn("Build base directory not found", result.stderr)
        self.assertNotIn("executable", result.stderr)
        mock_run.assert_not_called()

    @patch("lambda_transfer.build.subprocess.run")
    def test_timeout(self, mock_run):
        mock_run.side_effect = subprocess.TimeoutExpired(cmd="sam", timeout=30)
        result = self.invoker.build(self.request)
        self.assertEqual(result.exit_code, 124)


class TestDescribeFailure(unittest.TestCase):
    def test_prefers_stderr(self):
        message = describe_failure(BuildResult(2, stdout="out", stderr="boom"))
        self.assertEqual(message, "Build failed (exit 2): boom")

    def test_falls_back_to_stdout(self):
        self.assertIn("out", describe_failure(BuildResult(2, stdout="out")))

    def test_without_output(self):
        self.assertEqual(describe_failure(BuildResult(3)), "Build failed (exit 3)")

    def test_truncates_long_output(self):
        message = describe_failure(BuildResult(1, stderr="x" * 1000 + "tail"), limit=10)
        self.assertTrue(message.endswith("..." + ("x" * 6) + "tail"))


if __name__ == "__main__":
    unittest.main()
