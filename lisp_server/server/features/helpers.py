from typing import Iterable

from lsprotocol import types as lsp
from pygls.workspace import TextDocument

from ...reader import tokenize
from ..jobs.compile_document import DiagnosticRecord, ResolvedDiagnostic


def find_enclosing_form(text: str, offset: int) -> tuple[int, int] | None:
    """Find the innermost closed form containing `offset`, or the atom under it"""
    stack: list[int] = []
    nearest: tuple[int, int] | None = None
    atom: tuple[int, int] | None = None

    for lexeme in tokenize(text):
        match lexeme.kind:
            case "open":
                stack.append(lexeme.start)
            case "close":
                # Stray closing brackets don't start anything
                if not stack:
                    continue
                start, end = stack.pop(), lexeme.end
                if start <= offset < end and (nearest is None or start >= nearest[0]):
                    nearest = (start, end)
            case "comment":
                continue
            case _:
                if lexeme.start <= offset < lexeme.end:
                    atom = (lexeme.start, lexeme.end)

    return nearest or atom


def line_bounds(text: str, offset: int) -> tuple[int, int]:
    offset = min(max(offset, 0), len(text))

    start = text.rfind("\n", 0, offset) + 1
    end = text.find("\n", offset)
    if end < 0:
        end = len(text)

    return start, end


def resolve_span(text: str, offset: int) -> tuple[int, int]:
    """Map a compilation unit offset onto a non-empty span of the current text.

    The span is the enclosing form clamped to the line holding `offset`. This
    is approximate when the text changed since the snapshot was taken.
    """
    offset = min(max(offset, 0), len(text))
    line_start, line_end = line_bounds(text, offset)

    if bounds := find_enclosing_form(text, offset):
        form_start, form_end = bounds
    else:
        form_start = form_end = offset

    start = max(line_start, form_start)
    end = min(line_end, form_end)

    if start == end:
        start = max(start - 1, 0)

    return start, end


def resolve_records(
    document: TextDocument, records: Iterable[DiagnosticRecord]
) -> list[ResolvedDiagnostic]:
    text = document.source
    resolved = []

    for record in records:
        start, end = resolve_span(text, record.position)
        resolved.append(
            ResolvedDiagnostic(
                document_uri=document.uri,
                start=start,
                end=end,
                level=record.level,
                message=record.message,
            )
        )

    return resolved


def offset_to_position(text: str, offset: int) -> lsp.Position:
    offset = min(max(offset, 0), len(text))
    line = text.count("\n", 0, offset)
    line_start = text.rfind("\n", 0, offset) + 1

    prefix = text[line_start:offset]
    character = len(prefix.encode("utf-16-le")) // 2

    return lsp.Position(line=line, character=character)


def span_to_range(text: str, start: int, end: int) -> lsp.Range:
    return lsp.Range(
        start=offset_to_position(text, start), end=offset_to_position(text, end)
    )
