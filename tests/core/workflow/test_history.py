"""Tests for the bounded workflow history file."""

import json

from business_case_ai.core.workflow import WorkflowHistory


class TestWorkflowHistory:
    def test_empty(self, tmp_path):
        """A missing history file has no entries."""
        assert WorkflowHistory(tmp_path / "history.json").entries() == []

    def test_append_keeps_most_recent(self, tmp_path):
        """Only the newest entries up to the limit are kept."""
        history = WorkflowHistory(tmp_path / "history.json", limit=3)
        for i in range(5):
            history.append({"run_id": str(i)})
        assert [e["run_id"] for e in history.entries()] == ["2", "3", "4"]

    def test_default_limit_is_twenty(self, tmp_path):
        """Twenty runs are kept by default."""
        history = WorkflowHistory(tmp_path / "history.json")
        for i in range(25):
            history.append({"run_id": i})
        entries = history.entries()
        assert len(entries) == 20
        assert entries[0]["run_id"] == 5

    def test_no_temp_files_left(self, tmp_path):
        """Only the final file remains after an append."""
        history = WorkflowHistory(tmp_path / "history.json")
        history.append({"run_id": "a"})
        assert list(tmp_path.glob("*.tmp")) == []
        assert json.loads((tmp_path / "history.json").read_text()) == [{"run_id": "a"}]

    def test_corrupt_file_is_replaced(self, tmp_path):
        """An unreadable history file is started over."""
        path = tmp_path / "history.json"
        path.write_text("{not json")
        history = WorkflowHistory(path)
        assert history.entries() == []
        history.append({"run_id": "b"})
        assert history.entries() == [{"run_id": "b"}]

    def test_clear(self, tmp_path):
        """clear removes every entry."""
        history = WorkflowHistory(tmp_path / "history.json")
        history.append({"run_id": "a"})
        history.clear()
        assert history.entries() == []
