import json
import logging

from ...compiler import SENTINEL
from ..jobs.compile_document import DiagnosticRecord

__all__ = ["SENTINEL", "MalformedReport", "parse_report"]


class MalformedReport(ValueError):
    """The compiler output did not follow the report protocol"""


def parse_report(output: str) -> list[DiagnosticRecord]:
    lines = output.splitlines(keepends=True)

    index = next(
        (i for i, line in enumerate(lines) if line.rstrip("\r\n") == SENTINEL), None
    )

    if index is None:
        raise MalformedReport(f"Missing {SENTINEL} marker in compiler output")

    payload = "".join(lines[index + 1 :]).lstrip()

    # Only the first value is read, anything printed after it is ignored
    try:
        entries, _ = json.JSONDecoder().raw_decode(payload)
    except json.JSONDecodeError as exc:
        raise MalformedReport(f"Invalid diagnostic payload: {exc}") from exc

    if not isinstance(entries, list):
        raise MalformedReport(
            f"Expected a list of diagnostics, got {type(entries).__name__}"
        )

    records = []
    for entry in entries:
        if not (isinstance(entry, list) and len(entry) == 4):
            raise MalformedReport(f"Expected a 4-tuple diagnostic, got {entry!r}")

        message, position, reserved, level = entry

        if not isinstance(message, str) or not isinstance(level, str):
            raise MalformedReport(f"Invalid message or level in {entry!r}")

        if isinstance(position, bool) or not isinstance(position, int):
            raise MalformedReport(f"Invalid position in {entry!r}")

        records.append(DiagnosticRecord(message, position, reserved, level))

    logging.debug(f"Parsed {len(records)} diagnostics")
    return records
