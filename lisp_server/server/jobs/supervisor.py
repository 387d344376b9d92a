import asyncio
import itertools
import logging
import time
import traceback
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable

from pygls.workspace import TextDocument

from ..features.helpers import resolve_records
from ..features.validate import MalformedReport, parse_report
from .compile_document import Panic, ReportOutcome, ReportSink
from .launcher import ProcessHandle, ProcessResult, SubprocessLauncher
from .snapshot import SnapshotWriter

__all__ = ["JobState", "CompileJob", "CompileSupervisor"]


class JobState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    OBSOLETE = "obsolete"


@dataclass
class CompileJob:
    document_uri: str
    document: TextDocument
    unit_path: Path
    sequence: int

    created: float = field(default_factory=time.monotonic)
    state: JobState = JobState.IDLE
    handle: ProcessHandle | None = None
    output: str = ""
    task: "asyncio.Task[None] | None" = None


class CompileSupervisor:
    """Tracks at most one running compile job per document.

    Every transition happens on the event loop thread: `request` is the only
    writer of `jobs` and completions are handled by tasks on the same loop.
    """

    jobs: dict[str, CompileJob]

    def __init__(
        self,
        launcher: SubprocessLauncher,
        snapshots: SnapshotWriter | None = None,
        is_live: Callable[[TextDocument], bool] = lambda document: True,
    ):
        self.launcher = launcher
        self.snapshots = snapshots or SnapshotWriter()
        self.is_live = is_live
        self.jobs = {}
        self._sequence = itertools.count(1)

    def current(self, uri: str) -> CompileJob | None:
        return self.jobs.get(uri)

    async def request(
        self, document: TextDocument, report: ReportSink
    ) -> CompileJob | None:
        try:
            unit_path = self.snapshots.write(document.source)
        except OSError as exc:
            logging.error(f"Failed to snapshot {document.uri}: {exc}")
            return None

        if previous := self.jobs.get(document.uri):
            self.supersede(previous)

        job = CompileJob(
            document_uri=document.uri,
            document=document,
            unit_path=unit_path,
            sequence=next(self._sequence),
            state=JobState.RUNNING,
        )
        self.jobs[document.uri] = job

        try:
            handle = await self.launcher.launch(unit_path)
        except (OSError, ValueError) as exc:
            logging.error(f"Failed to start compiler for {document.uri}: {exc}")
            job.state = JobState.IDLE
            if self.jobs.get(document.uri) is job:
                del self.jobs[document.uri]
            self.snapshots.discard(unit_path)
            return None

        job.handle = handle
        logging.debug(
            f"Started compile job {job.sequence} (pid {handle.pid}) for {document.uri}"
        )

        # A newer request may have arrived while this process was starting
        if self.jobs.get(document.uri) is not job:
            handle.kill()

        job.task = asyncio.create_task(self.supervise(job, handle, report))
        return job

    def supersede(self, job: CompileJob):
        logging.debug(f"Superseding compile job {job.sequence} for {job.document_uri}")
        if job.handle is not None:
            job.handle.kill()

    def forget(self, uri: str):
        """Stop tracking the job of a closed document, its result will be dropped"""
        self.jobs.pop(uri, None)

    def shutdown(self):
        for job in self.jobs.values():
            if job.handle is not None:
                job.handle.kill()
        self.jobs.clear()

    async def supervise(
        self, job: CompileJob, handle: ProcessHandle, report: ReportSink
    ):
        outcome: ReportOutcome | None

        try:
            result = await handle.wait()
            job.output = result.output
            outcome = self.complete(job, handle, result)
        except Exception as exc:
            tb = "\n".join(traceback.format_tb(exc.__traceback__))
            logging.error(f"Compile job {job.sequence} crashed: {exc}\n{tb}")
            if self.is_obsolete(job):
                outcome = None
            else:
                job.state = JobState.FAILED
                outcome = Panic(
                    f"Compile job for {job.document_uri} crashed: {type(exc).__name__}: {exc}"
                )
        finally:
            self.snapshots.discard(job.unit_path)
            if self.jobs.get(job.document_uri) is job:
                del self.jobs[job.document_uri]

        if outcome is None:
            return

        try:
            report(outcome)
        except Exception as exc:
            tb = "\n".join(traceback.format_tb(exc.__traceback__))
            logging.error(f"Failed to report compile job {job.sequence}: {exc}\n{tb}")

    def is_obsolete(self, job: CompileJob) -> bool:
        # A closed document can't be asked for its current job
        if not self.is_live(job.document):
            logging.warning(
                f"Dropping compile job {job.sequence}: {job.document_uri} is no longer open"
            )
            job.state = JobState.OBSOLETE
            return True

        if self.jobs.get(job.document_uri) is not job:
            logging.warning(
                f"Dropping compile job {job.sequence}: superseded for {job.document_uri}"
            )
            job.state = JobState.OBSOLETE
            return True

        return False

    def complete(
        self, job: CompileJob, handle: ProcessHandle, result: ProcessResult
    ) -> ReportOutcome | None:
        if self.is_obsolete(job):
            return None

        if result.returncode != 0:
            logging.error(
                f"Compiler process {handle.pid} exited with code {result.returncode}"
            )
            job.state = JobState.FAILED
            return Panic(
                f"Compiler process {handle.pid} exited abnormally with code {result.returncode}\n"
                f"{result.output}"
            )

        try:
            records = parse_report(result.stdout)
        except MalformedReport as exc:
            logging.error(f"Malformed report from process {handle.pid}: {exc}")
            job.state = JobState.FAILED
            return Panic(
                f"Compiler process {handle.pid} exited with code {result.returncode} "
                f"but its report could not be read: {exc}\n{result.output}"
            )

        diagnostics = resolve_records(job.document, records)
        job.state = JobState.COMPLETED
        logging.debug(
            f"Compile job {job.sequence} finished with {len(diagnostics)} diagnostics"
        )
        return diagnostics
