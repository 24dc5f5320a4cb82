"""
Integration tests for TaskLinkController.

Runs commands end to end against MockTransport and a real dump file.
"""

import pytest
from tasklink.controller import TaskLinkController
from tasklink.dump_store import DumpStore
from tasklink.errors import ImageUnreadable, SymbolNotFound
from tasklink.frames import decode_frame
from tasklink.transport import MockTransport
from tasklink.types import (
    KillCommand,
    ListCommand,
    LoadCommand,
    LogAttachCommand,
    RelaunchCommand,
)


@pytest.fixture
def dump(tmp_path):
    return DumpStore(tmp_path / "elf.dump")


@pytest.fixture
def controller(dump):
    transport = MockTransport()
    return TaskLinkController(transport, dump), transport


class TestLoadDispatch:

    def test_load_sends_resolved_frame(self, controller, elf_file):
        ctrl, transport = controller

        result = ctrl.dispatch(LoadCommand(elf_file, "main", "app"))

        decoded = decode_frame(transport.last_frame)
        assert decoded.kind == "load"
        assert decoded.address == 0x20001040
        assert decoded.task_id == b"app     "
        assert decoded.image == elf_file.read_bytes()
        assert result.success

    def test_load_writes_dump(self, controller, dump, elf_file):
        ctrl, transport = controller
        ctrl.dispatch(LoadCommand(elf_file, "_start", "app"))
        assert dump.load() == transport.last_frame

    def test_missing_symbol_sends_nothing(self, controller, dump, elf_file):
        ctrl, transport = controller

        with pytest.raises(SymbolNotFound):
            ctrl.dispatch(LoadCommand(elf_file, "absent", "app"))

        assert transport.frame_count == 0
        assert not dump.file_path.exists()

    def test_missing_image_sends_nothing(self, controller, tmp_path):
        ctrl, transport = controller

        with pytest.raises(ImageUnreadable):
            ctrl.dispatch(LoadCommand(tmp_path / "nope.elf", "_start", "app"))

        assert transport.frame_count == 0


class TestTaskDispatch:

    def test_kill(self, controller):
        ctrl, transport = controller
        ctrl.dispatch(KillCommand("toolongid"))
        assert transport.last_frame == b"KILLTASKtoolongi"

    def test_relaunch(self, controller):
        ctrl, transport = controller
        ctrl.dispatch(RelaunchCommand("sh"))
        assert transport.last_frame == b"RELAUNCHsh      "

    def test_list(self, controller, dump):
        ctrl, transport = controller
        ctrl.dispatch(ListCommand())
        assert transport.last_frame == b"LISTTASK"
        assert dump.load() == b"LISTTASK"

    def test_log_attach_writes_nothing(self, controller, dump):
        ctrl, transport = controller

        result = ctrl.dispatch(LogAttachCommand())

        assert transport.frame_count == 0
        assert not dump.file_path.exists()
        assert result.frame_size == 0
        assert result.success

    def test_dump_failure_does_not_block_delivery(self, tmp_path):
        transport = MockTransport()
        ctrl = TaskLinkController(transport, DumpStore(tmp_path / "no-such-dir" / "elf.dump"))

        result = ctrl.dispatch(ListCommand())

        assert transport.last_frame == b"LISTTASK"
        assert result.dumped is False
        assert result.success

    def test_same_command_same_frame(self, controller):
        ctrl, transport = controller
        ctrl.dispatch(KillCommand("shell"))
        ctrl.dispatch(KillCommand("shell"))
        assert transport.frames[0] == transport.frames[1]


class TestHistory:

    def test_records_each_dispatch(self, controller):
        ctrl, _ = controller
        ctrl.dispatch(ListCommand())
        ctrl.dispatch(KillCommand("a"))

        history = ctrl.get_history()
        assert [r.kind for r in history] == ["list", "kill"]
        assert ctrl.get_history(limit=1)[0].kind == "kill"
        assert ctrl.get_last_result().kind == "kill"

    def test_incomplete_write_is_not_success(self, dump):
        class ShortTransport(MockTransport):
            def write_frame(self, frame):
                super().write_frame(frame)
                return len(frame) - 1

        ctrl = TaskLinkController(ShortTransport(), dump)
        result = ctrl.dispatch(ListCommand())

        assert not result.success
        assert "7/8" in str(result)


class TestDumpStoreInterface:

    def test_accepts_any_dump_store(self):
        """Any object with save/load can hold the diagnostic copy."""
        class MemoryDump:
            def __init__(self):
                self.data = b""

            def save(self, data: bytes) -> bool:
                self.data = bytes(data)
                return True

            def load(self) -> bytes:
                return self.data

        memory = MemoryDump()
        transport = MockTransport()
        ctrl = TaskLinkController(transport, memory)

        result = ctrl.dispatch(RelaunchCommand("shell"))

        assert result.dumped
        assert memory.load() == transport.last_frame == b"RELAUNCHshell   "
