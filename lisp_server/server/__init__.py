import logging
import shlex

from pygls.server import LanguageServer
from pygls.workspace import TextDocument

from .. import __version__
from .jobs.launcher import CompilerInvocation, SubprocessLauncher
from .jobs.snapshot import SnapshotWriter
from .jobs.supervisor import CompileSupervisor

logging.basicConfig(
    filename="lisp-compile.log",
    filemode="w",
    level=logging.DEBUG,
    format="%(levelname)s:%(filename)s:%(lineno)d:\t%(message)s",
)


class LispLanguageServer(LanguageServer):
    invocation: CompilerInvocation
    supervisor: CompileSupervisor

    def __init__(self, *args):
        super().__init__(*args)
        self.invocation = CompilerInvocation.default()
        self.supervisor = CompileSupervisor(
            SubprocessLauncher(self.invocation), SnapshotWriter(), self.is_live
        )

    def set_sites(self, sites: list[str]):
        self.invocation.search_paths = list(sites)

    def set_compiler(self, command: str | None = None, entrypoint: str | None = None):
        if command:
            self.invocation.executable = shlex.split(command)
        if entrypoint:
            self.invocation.entrypoint = entrypoint
        logging.debug(f"Compiler invocation: {self.invocation}")

    def is_live(self, document: TextDocument) -> bool:
        """True while the workspace still holds this exact document"""
        return self.workspace.text_documents.get(document.uri) is document


compile_server = LispLanguageServer("lisp-compile-server", "v" + __version__)
