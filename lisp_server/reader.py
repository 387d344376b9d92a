from dataclasses import dataclass, field
from typing import Iterator, NamedTuple

from tokenstream import TokenStream

__all__ = ["Lexeme", "Atom", "Form", "ReaderError", "tokenize", "read", "walk"]


BRACKETS = {"(": ")", "[": "]"}

SYNTAX = {
    "comment": r";[^\n]*",
    "string": r'"(?:\\.|[^"\\])*"',
    "unterminated": r'"(?:\\.|[^"\\])*\\?\Z',
    "open": r"[(\[]",
    "close": r"[)\]]",
    "atom": r"[^\s()\[\]\";]+",
    "blank": r"[^\S \t\n]+",
}


class Lexeme(NamedTuple):
    kind: str
    value: str
    start: int
    end: int


@dataclass
class Atom:
    value: str
    start: int
    end: int


@dataclass
class Form:
    bracket: str
    start: int
    end: int = -1
    items: list["Form | Atom"] = field(default_factory=list)
    closed: bool = False

    @property
    def head(self) -> "Atom | None":
        if self.items and isinstance(self.items[0], Atom):
            return self.items[0]
        return None


@dataclass
class ReaderError:
    message: str
    position: int


def tokenize(text: str) -> list[Lexeme]:
    """Split source text into lexemes with character offsets"""
    stream = TokenStream(text)
    lexemes: list[Lexeme] = []

    with stream.syntax(**SYNTAX):
        for token in stream:
            if token.type not in SYNTAX or token.type == "blank":
                continue
            lexemes.append(
                Lexeme(
                    token.type,
                    token.value,
                    token.location.pos,
                    token.end_location.pos,
                )
            )

    return lexemes


def read(text: str) -> tuple[list[Form | Atom], list[ReaderError]]:
    """Read every top level form, collecting reader errors instead of raising"""
    root: list[Form | Atom] = []
    stack: list[Form] = []
    errors: list[ReaderError] = []

    def append(node: Form | Atom):
        if stack:
            stack[-1].items.append(node)
        else:
            root.append(node)

    for lexeme in tokenize(text):
        match lexeme.kind:
            case "comment":
                continue
            case "open":
                form = Form(lexeme.value, lexeme.start)
                append(form)
                stack.append(form)
            case "close":
                if not stack:
                    errors.append(
                        ReaderError(f"Unmatched closing '{lexeme.value}'", lexeme.start)
                    )
                    continue

                form = stack.pop()
                expected = BRACKETS[form.bracket]
                if lexeme.value != expected:
                    errors.append(
                        ReaderError(
                            f"Mismatched '{lexeme.value}', expected '{expected}'",
                            lexeme.start,
                        )
                    )
                form.end = lexeme.end
                form.closed = True
            case "unterminated":
                errors.append(ReaderError("Unterminated string", lexeme.start))
                append(Atom(lexeme.value, lexeme.start, lexeme.end))
            case _:
                append(Atom(lexeme.value, lexeme.start, lexeme.end))

    for form in stack:
        form.end = len(text)
        errors.append(ReaderError(f"Unclosed '{form.bracket}'", form.start))

    return root, errors


def walk(nodes: list[Form | Atom]) -> Iterator[Form | Atom]:
    for node in nodes:
        yield node
        if isinstance(node, Form):
            yield from walk(node.items)
