import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

import requests

from lambda_transfer.errors import FetchError
from lambda_transfer.fetcher import USER_AGENT, fetch_artifact
from lambda_transfer.progress import ProgressSink

PRESIGNED_URL = "https://awslambda-us-east-1-tasks.s3.amazonaws.com/snapshots/fn1.zip?X-Amz-Signature=secret"


class RecordingSink(ProgressSink):
    def __init__(self):
        self.increments = []

    def report(self, increment, message=None):
        self.increments.append(increment)


def _session_with_response(chunks=(), error=None, status=200):
    """Build a mock requests session whose streamed GET yields `chunks`."""
    session = MagicMock()
    response = session.get.return_value.__enter__.return_value
    response.status_code = status
    response.iter_content.return_value = list(chunks)
    if error is not None:
        response.raise_for_status.side_effect = error
    return session, response


class TestFetchArtifact(unittest.TestCase):
    def setUp(self):
        self.test_dir = Path(tempfile.mkdtemp())
        self.destination = self.test_dir / "function.zip"

    def tearDown(self):
        shutil.rmtree(self.test_dir)

    def _leftovers(self):
        return sorted(p.name for p in self.test_dir.iterdir())

    def test_streams_body_into_destination(self):
        session, response = _session_with_response([b"PK\x03\x04", b"", b"rest"])

        written = fetch_artifact(PRESIGNED_URL, self.destination, session=session, chunk_size=4)

        self.assertEqual(written, 8)
        self.assertEqual(self.destination.read_bytes(), b"PK\x03\x04rest")
        self.assertEqual(self._leftovers(), ["function.zip"])
        session.get.assert_called_once_with(
            PRESIGNED_URL,
            stream=True,
            timeout=60.0,
            headers={"User-Agent": USER_AGENT},
        )
        response.iter_content.assert_called_once_with(chunk_size=4)
        session.close.assert_not_called()

    def test_replaces_existing_destination(self):
        self.destination.write_bytes(b"old artifact")
        session, _ = _session_with_response([b"new"])
        fetch_artifact(PRESIGNED_URL, self.destination, session=session)
        self.assertEqual(self.destination.read_bytes(), b"new")

    def test_http_error_status(self):
        error_response = MagicMock(status_code=403)
        session, _ = _session_with_response(
            error=requests.exceptions.HTTPError("403 Forbidden", response=error_response)
        )

        with self.assertRaises(FetchError) as ctx:
            fetch_artifact(PRESIGNED_URL, self.destination, session=session)

        self.assertIn("HTTP 403", str(ctx.exception))
        self.assertNotIn("secret", str(ctx.exception))
        self.assertEqual(self._leftovers(), [])

    def test_transport_error(self):
        session = MagicMock()
        session.get.side_effect = requests.exceptions.ConnectionError("connection refused")

        with self.assertRaises(FetchError):
            fetch_artifact(PRESIGNED_URL, self.destination, session=session)
        self.assertEqual(self._leftovers(), [])

    def test_stream_interrupted_discards_partial_file(self):
        def _broken_stream(chunk_size):
            yield b"partial"
            raise requests.exceptions.ChunkedEncodingError("connection reset")

        session, response = _session_with_response()
        response.iter_content.side_effect = _broken_stream

        with self.assertRaises(FetchError):
            fetch_artifact(PRESIGNED_URL, self.destination, session=session)
        self.assertEqual(self._leftovers(), [])

    def test_empty_body(self):
        session, _ = _session_with_response([])
        with self.assertRaises(FetchError) as ctx:
            fetch_artifact(PRESIGNED_URL, self.destination, session=session)
        self.assertIn("no data", str(ctx.exception))
        self.assertEqual(self._leftovers(), [])

    def test_progress_is_bounded(self):
        sink = RecordingSink()
        session, _ = _session_with_response([b"abc"])
        fetch_artifact(PRESIGNED_URL, self.destination, progress=sink, session=session)
        self.assertTrue(all(increment > 0 for increment in sink.increments))
        self.assertAlmostEqual(sum(sink.increments), 100.0)

    def test_failed_download_does_not_complete_progress(self):
        sink = RecordingSink()
        session = MagicMock()
        session.get.side_effect = requests.exceptions.Timeout("timed out")
        with self.assertRaises(FetchError):
            fetch_artifact(PRESIGNED_URL, self.destination, progress=sink, session=session)
        self.assertLess(sum(sink.increments), 100.0)

    @patch("lambda_transfer.fetcher.requests.Session")
    def test_owned_session_is_closed(self, mock_session_cls):
        session, _ = _session_with_response([b"data"])
        mock_session_cls.return_value = session

        fetch_artifact(PRESIGNED_URL, self.destination)

        session.close.assert_called_once()


if __name__ == "__main__":
    unittest.main()
