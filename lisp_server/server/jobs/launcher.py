import asyncio
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path

__all__ = [
    "CompilerInvocation",
    "ProcessResult",
    "ProcessHandle",
    "SubprocessLauncher",
]


BACKEND_PATH = str(Path(__file__).parents[2] / "compiler.py")


@dataclass
class CompilerInvocation:
    executable: list[str]
    search_paths: list[str] = field(default_factory=list)
    backend_path: str = BACKEND_PATH
    entrypoint: str = "compile-and-report"

    batch_flag: str = "--batch"
    search_path_flag: str = "-L"
    load_flag: str = "-l"
    entrypoint_flag: str = "-f"

    @classmethod
    def default(cls, search_paths: list[str] | None = None) -> "CompilerInvocation":
        """Run the bundled batch runner with the current interpreter"""
        return cls(
            executable=[sys.executable, "-m", "lisp_server.batch"],
            search_paths=list(search_paths or []),
        )

    def argv(self, target: str | Path) -> list[str]:
        args = [*self.executable, self.batch_flag]

        for path in self.search_paths:
            args += [self.search_path_flag, path]

        return [
            *args,
            self.load_flag,
            self.backend_path,
            self.entrypoint_flag,
            self.entrypoint,
            str(target),
        ]


@dataclass
class ProcessResult:
    returncode: int
    stdout: str
    stderr: str

    @property
    def output(self) -> str:
        return self.stdout + self.stderr


class ProcessHandle:
    """A running compiler process whose output is only read at completion"""

    def __init__(self, process: asyncio.subprocess.Process):
        self.process = process
        self._result: asyncio.Future[ProcessResult] | None = None

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def returncode(self) -> int | None:
        return self.process.returncode

    def kill(self):
        if self.process.returncode is not None:
            return

        try:
            self.process.kill()
        except ProcessLookupError:
            logging.debug(f"Process {self.pid} already exited")

    def wait(self) -> "asyncio.Future[ProcessResult]":
        if self._result is None:
            self._result = asyncio.ensure_future(self._communicate())
        return self._result

    async def _communicate(self) -> ProcessResult:
        stdout, stderr = await self.process.communicate()
        return ProcessResult(
            returncode=self.process.returncode or 0,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )


class SubprocessLauncher:
    invocation: CompilerInvocation

    def __init__(self, invocation: CompilerInvocation):
        self.invocation = invocation

    async def launch(self, unit_path: Path) -> ProcessHandle:
        argv = self.invocation.argv(unit_path)
        logging.debug(f"Launching compiler: {argv}")

        process = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )

        return ProcessHandle(process)
