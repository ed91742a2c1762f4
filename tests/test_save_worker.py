"""Tests for the background save worker."""

from texture_annotator.core.results import OperationResult
from texture_annotator.workers.save_worker import SaveWorker


class FailingStorage:
    """Storage whose save raises instead of returning a result."""

    def save_payload(self, payload):
        raise RuntimeError("disk vanished")


class RecordingStorage:
    def __init__(self, result):
        self.result = result
        self.payloads = []

    def save_payload(self, payload):
        self.payloads.append(payload)
        return self.result


class TestSaveWorker:
    """Tests for SaveWorker."""

    def test_reports_result(self, qapp):
        storage = RecordingStorage(OperationResult.ok())
        worker = SaveWorker(storage, "payload")
        results = []
        worker.save_finished.connect(results.append)

        worker.run()

        assert storage.payloads == ["payload"]
        assert len(results) == 1
        assert results[0].success

    def test_unexpected_error_still_reports(self, qapp):
        """An exception during the save ends in a failed result, not silence."""
        worker = SaveWorker(FailingStorage(), None)
        results = []
        worker.save_finished.connect(results.append)

        worker.run()

        assert len(results) == 1
        assert not results[0].success
        assert results[0].error == "Error saving annotations: disk vanished"
