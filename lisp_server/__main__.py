import argparse
import logging

from lsprotocol import types as lsp

from .server import LispLanguageServer, compile_server
from .server.features.diagnostics import clear_diagnostics, publish_diagnostics


@compile_server.feature(lsp.TEXT_DOCUMENT_DID_OPEN)
async def did_open(ls: LispLanguageServer, params: lsp.DidOpenTextDocumentParams):
    await publish_diagnostics(ls, params)


@compile_server.feature(lsp.TEXT_DOCUMENT_DID_CHANGE)
async def did_change(ls: LispLanguageServer, params: lsp.DidChangeTextDocumentParams):
    await publish_diagnostics(ls, params)


@compile_server.feature(lsp.TEXT_DOCUMENT_DID_SAVE)
async def did_save(ls: LispLanguageServer, params: lsp.DidSaveTextDocumentParams):
    await publish_diagnostics(ls, params)


@compile_server.feature(lsp.TEXT_DOCUMENT_DID_CLOSE)
def did_close(ls: LispLanguageServer, params: lsp.DidCloseTextDocumentParams):
    clear_diagnostics(ls, params)


@compile_server.feature(lsp.SHUTDOWN)
def shutdown(ls: LispLanguageServer, *args):
    ls.supervisor.shutdown()


def add_arguments(parser: argparse.ArgumentParser):
    parser.description = "Out of process compile diagnostics for lisp sources"

    parser.add_argument("--tcp", action="store_true", help="Use TCP server")
    parser.add_argument("--ws", action="store_true", help="Use WebSocket server")
    parser.add_argument("--host", default="127.0.0.1", help="Bind to this address")
    parser.add_argument("--port", type=int, default=2087, help="Bind to this port")
    parser.add_argument(
        "--site",
        type=str,
        default=[],
        nargs="*",
        help="Search paths passed to the compiler process",
    )
    parser.add_argument(
        "--compiler",
        type=str,
        default=None,
        help="Command used to start the compiler, defaults to the bundled batch runner",
    )
    parser.add_argument(
        "--entrypoint",
        type=str,
        default=None,
        help="Compiler entry point producing the diagnostic report",
    )


def main():
    parser = argparse.ArgumentParser()
    add_arguments(parser)
    args = parser.parse_args()

    logging.info("Starting Lisp compile server")

    compile_server.set_sites(args.site)
    compile_server.set_compiler(args.compiler, args.entrypoint)

    if args.tcp:
        compile_server.start_tcp(args.host, args.port)
    elif args.ws:
        compile_server.start_ws(args.host, args.port)
    else:
        compile_server.start_io()


if __name__ == "__main__":
    main()
