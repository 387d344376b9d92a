"""Compile-and-report backend loaded by the batch runner.

Reads a compilation unit, checks it and prints the report protocol: free
form text, the sentinel line, then a JSON list of
`[message, offset, null, level]` entries where `offset` is a character
offset into the unit.
"""

import json
import sys
from pathlib import Path
from typing import Any

from lisp_server.reader import Atom, Form, read, walk

SENTINEL = ":lisp-compile-output-start"

LET_FORMS = {"let", "let*"}
DEFINE_FORMS = {"define", "defun", "defvar", "defmacro"}


def check_bindings(form: Form) -> list[list[Any]]:
    if len(form.items) < 2 or not isinstance(form.items[1], Form):
        return []

    bindings: list[tuple[Atom, list[Form | Atom]]] = []
    for binding in form.items[1].items:
        if isinstance(binding, Atom):
            bindings.append((binding, []))
        elif binding.items and isinstance(binding.items[0], Atom):
            bindings.append((binding.items[0], binding.items[1:]))

    body = form.items[2:]
    sequential = form.head is not None and form.head.value == "let*"

    diagnostics = []
    for index, (name, _) in enumerate(bindings):
        scope = list(body)
        if sequential:
            for _, init in bindings[index + 1 :]:
                scope.extend(init)

        used = any(
            isinstance(node, Atom) and node.value == name.value for node in walk(scope)
        )
        if not used:
            diagnostics.append(
                [f"unused variable {name.value}", name.start, None, "warning"]
            )

    return diagnostics


def defined_name(form: Form) -> Atom | None:
    if len(form.items) < 2:
        return None

    target = form.items[1]
    if isinstance(target, Form):
        return target.head
    return target


def check(text: str) -> list[list[Any]]:
    forms, errors = read(text)
    diagnostics: list[list[Any]] = [
        [error.message, error.position, None, "error"] for error in errors
    ]

    defined: set[str] = set()
    for node in forms:
        if not isinstance(node, Form):
            continue

        if not node.items and node.closed:
            diagnostics.append(["Empty form at top level", node.start, None, "note"])

        head = node.head
        if head and head.value in DEFINE_FORMS and (name := defined_name(node)):
            if name.value in defined:
                diagnostics.append(
                    [f"{name.value} is already defined", name.start, None, "warning"]
                )
            defined.add(name.value)

    for node in walk(forms):
        if isinstance(node, Form) and node.head and node.head.value in LET_FORMS:
            diagnostics.extend(check_bindings(node))

    return diagnostics


def compile_and_report(path: str):
    source = Path(path).read_text(encoding="utf-8")

    print(f"Compiling {path}")
    diagnostics = check(source)
    print(f"Found {len(diagnostics)} diagnostics")

    print(SENTINEL)
    print(json.dumps(diagnostics))
    sys.stdout.flush()
