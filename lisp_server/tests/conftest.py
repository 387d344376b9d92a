import asyncio
from pathlib import Path

import pytest
from pygls.workspace import TextDocument

from lisp_server.server.jobs.launcher import ProcessResult
from lisp_server.server.jobs.snapshot import SnapshotWriter
from lisp_server.server.jobs.supervisor import CompileSupervisor


class FakeHandle:
    def __init__(self, pid: int, events: list[tuple[str, int]]):
        self.pid = pid
        self.events = events
        self.killed = False
        self.unit_path: Path | None = None
        self.unit_text: str | None = None
        self._result: asyncio.Future[ProcessResult] = (
            asyncio.get_running_loop().create_future()
        )

    @property
    def returncode(self):
        return self._result.result().returncode if self._result.done() else None

    def kill(self):
        self.killed = True
        self.events.append(("kill", self.pid))

    def wait(self):
        return self._result

    def finish(self, returncode: int = 0, stdout: str = "", stderr: str = ""):
        if not self._result.done():
            self._result.set_result(ProcessResult(returncode, stdout, stderr))


class FakeLauncher:
    def __init__(self):
        self.handles: list[FakeHandle] = []
        self.events: list[tuple[str, int]] = []
        self.fail_with: Exception | None = None

    async def launch(self, unit_path: Path) -> FakeHandle:
        if self.fail_with is not None:
            raise self.fail_with

        handle = FakeHandle(len(self.handles) + 1, self.events)
        handle.unit_path = unit_path
        handle.unit_text = unit_path.read_text(encoding="utf-8")
        self.handles.append(handle)
        self.events.append(("launch", handle.pid))
        return handle


class Reports:
    def __init__(self):
        self.outcomes = []

    def __call__(self, outcome):
        self.outcomes.append(outcome)


@pytest.fixture
def launcher():
    return FakeLauncher()


@pytest.fixture
def open_documents() -> dict[str, TextDocument]:
    return {}


@pytest.fixture
def supervisor(launcher, open_documents, tmp_path):
    return CompileSupervisor(
        launcher,
        SnapshotWriter(directory=str(tmp_path)),
        lambda document: open_documents.get(document.uri) is document,
    )


@pytest.fixture
def open_document(open_documents):
    def open(source: str, uri: str = "file:///workspace/main.lisp") -> TextDocument:
        document = TextDocument(uri, source, version=1)
        open_documents[uri] = document
        return document

    return open


@pytest.fixture
def reports():
    return Reports()
