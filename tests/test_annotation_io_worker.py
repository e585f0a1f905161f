"""Tests for the background save/load workers."""

from bbox_editor.core.results import ExportResult, ImportResult
from bbox_editor.core.simple_format import SimpleAnnotationFormat
from bbox_editor.workers.annotation_io import ExportWorker, ImportWorker


class TestExportWorker:
    """Tests for ExportWorker."""

    def test_run_emits_progress_and_result(self, qapp, tmp_path, sample_data):
        """Test that a save reports progress and completes with its result."""
        worker = ExportWorker(sample_data, tmp_path, "pascal_voc")
        progress, results, failures = [], [], []
        worker.progress.connect(progress.append)
        worker.completed.connect(results.append)
        worker.failed.connect(failures.append)

        worker.run()

        assert progress == [50, 100]
        assert failures == []
        assert len(results) == 1
        assert isinstance(results[0], ExportResult)
        assert results[0].nr_successfully_processed_items == 2

    def test_unknown_format_fails(self, qapp, tmp_path, sample_data):
        """Test that configuration errors are signalled, not raised."""
        worker = ExportWorker(sample_data, tmp_path, "yolo")
        results, failures = [], []
        worker.completed.connect(results.append)
        worker.failed.connect(failures.append)

        worker.run()

        assert results == []
        assert len(failures) == 1
        assert "yolo" in failures[0]

    def test_stop_before_run_cancels(self, qapp, tmp_path, sample_data):
        """Test that a stopped worker returns a cancelled result."""
        worker = ExportWorker(sample_data, tmp_path, "pascal_voc")
        results = []
        worker.completed.connect(results.append)

        worker.stop()
        worker.run()

        assert results[0].cancelled is True
        assert results[0].nr_successfully_processed_items == 0

    def test_runs_in_thread(self, qapp, tmp_path, sample_data):
        """Test running the worker as a real background thread."""
        worker = ExportWorker(sample_data, tmp_path, "simple")

        worker.start()
        assert worker.wait(10000)

        assert (tmp_path / "annotations.json").exists()


class TestImportWorker:
    """Tests for ImportWorker."""

    def test_round_trip(self, qapp, tmp_path, sample_data):
        """Test loading what an export worker saved."""
        ExportWorker(sample_data, tmp_path, "simple").run()
        worker = ImportWorker(tmp_path, "simple")
        results = []
        worker.completed.connect(results.append)

        worker.run()

        assert isinstance(results[0], ImportResult)
        assert results[0].data == sample_data

    def test_missing_source_fails(self, qapp, tmp_path):
        """Test that a missing source is signalled as failure."""
        worker = ImportWorker(tmp_path / "missing", "pascal_voc")
        failures = []
        worker.failed.connect(failures.append)

        worker.run()

        assert len(failures) == 1


class TestWorkerFailures:
    """Tests for errors raised inside a running worker."""

    def test_unexpected_error_is_signalled(self, qapp, tmp_path, sample_data, monkeypatch):
        """Test that any strategy exception ends in failed, not in the thread."""
        def broken_save(self, *args, **kwargs):
            raise RuntimeError("disk controller reset")

        monkeypatch.setattr(SimpleAnnotationFormat, "save", broken_save)
        worker = ExportWorker(sample_data, tmp_path, "simple")
        results, failures = [], []
        worker.completed.connect(results.append)
        worker.failed.connect(failures.append)

        worker.run()

        assert results == []
        assert len(failures) == 1
        assert "disk controller reset" in failures[0]

    def test_unexpected_error_in_thread(self, qapp, tmp_path, monkeypatch):
        """Test that a failing load in a real thread still finishes the thread."""
        def broken_load(self, *args, **kwargs):
            raise TypeError("unexpected value")

        monkeypatch.setattr(SimpleAnnotationFormat, "load", broken_load)
        worker = ImportWorker(tmp_path, "simple")

        worker.start()

        assert worker.wait(10000)
        assert worker.isFinished()
