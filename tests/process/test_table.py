"""Tests for the process table."""

import pytest

from kernelsim.process import ProcessState, ProcessTable, RecordingHandle

TABLE_SIZE = 4


def _table(size: int = TABLE_SIZE) -> ProcessTable:
    """Create a table of recording handles."""
    return ProcessTable([RecordingHandle(f"A{i}") for i in range(size)])


class TestProcessTable:
    """Verify get, set_state, and count."""

    def test_count(self) -> None:
        """The table has one slot per handle."""
        table = _table()
        assert table.count() == TABLE_SIZE
        assert len(table) == TABLE_SIZE

    def test_records_in_index_order(self) -> None:
        """Iteration yields slots 0..N-1."""
        assert [r.index for r in _table()] == list(range(TABLE_SIZE))

    def test_get_returns_record_with_handle(self) -> None:
        """Slot i holds handle i."""
        table = _table()
        assert table.get(2).handle.name == "A2"

    def test_all_start_ready(self) -> None:
        """Every slot starts READY."""
        table = _table()
        assert table.in_state(ProcessState.READY) == list(range(TABLE_SIZE))

    def test_set_state_has_no_transition_checks(self) -> None:
        """set_state overwrites the state directly."""
        table = _table()
        table.set_state(1, ProcessState.BLOCKED)
        assert table.get(1).state is ProcessState.BLOCKED

    def test_running_lists_running_slots(self) -> None:
        """running() reports every RUNNING slot."""
        table = _table()
        assert table.running() == []
        table.set_state(3, ProcessState.RUNNING)
        assert table.running() == [3]

    @pytest.mark.parametrize("index", [-1, TABLE_SIZE])
    def test_get_out_of_range_raises(self, index: int) -> None:
        """Indices outside the table raise IndexError."""
        with pytest.raises(IndexError, match="out of range"):
            _table().get(index)

    def test_set_state_out_of_range_raises(self) -> None:
        """set_state is bounds-checked too."""
        with pytest.raises(IndexError):
            _table().set_state(TABLE_SIZE, ProcessState.READY)

    def test_snapshot_has_every_slot(self) -> None:
        """The snapshot lists every record."""
        snap = _table().snapshot()
        assert [s["name"] for s in snap] == ["A0", "A1", "A2", "A3"]
