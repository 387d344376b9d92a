import logging

import lsprotocol.types as lsp
from pygls.workspace import TextDocument

from .. import LispLanguageServer
from ..jobs.compile_document import Panic, ReportOutcome, ReportSink, ResolvedDiagnostic
from .helpers import span_to_range

SOURCE = "lisp-compile"

SEVERITIES = {
    "error": lsp.DiagnosticSeverity.Error,
    "warning": lsp.DiagnosticSeverity.Warning,
    "note": lsp.DiagnosticSeverity.Information,
}


def to_lsp_diagnostic(text: str, diagnostic: ResolvedDiagnostic) -> lsp.Diagnostic:
    return lsp.Diagnostic(
        range=span_to_range(text, diagnostic.start, diagnostic.end),
        message=diagnostic.message,
        severity=SEVERITIES.get(diagnostic.level, lsp.DiagnosticSeverity.Information),
        source=SOURCE,
    )


def make_report_sink(ls: LispLanguageServer, document: TextDocument) -> ReportSink:
    def report(outcome: ReportOutcome):
        if isinstance(outcome, Panic):
            logging.error(f"Compilation of {document.uri} failed\n{outcome.explanation}")
            ls.show_message_log(outcome.explanation, lsp.MessageType.Error)
            ls.show_message(
                f"Compiling {document.filename} failed, see the output log for details",
                lsp.MessageType.Error,
            )
            return

        diagnostics = [to_lsp_diagnostic(document.source, d) for d in outcome]
        logging.debug(f"Sending diagnostics: {diagnostics}")

        ls.publish_diagnostics(document.uri, diagnostics, version=document.version)

    return report


async def publish_diagnostics(
    ls: LispLanguageServer,
    params: lsp.DidOpenTextDocumentParams
    | lsp.DidChangeTextDocumentParams
    | lsp.DidSaveTextDocumentParams,
):
    text_doc = ls.workspace.get_text_document(params.text_document.uri)

    await ls.supervisor.request(text_doc, make_report_sink(ls, text_doc))


def clear_diagnostics(ls: LispLanguageServer, params: lsp.DidCloseTextDocumentParams):
    ls.supervisor.forget(params.text_document.uri)
    ls.publish_diagnostics(params.text_document.uri, [])
