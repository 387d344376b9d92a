import argparse
import importlib.util
import sys
import traceback
from pathlib import Path


def add_arguments(parser: argparse.ArgumentParser):
    parser.description = "Run a compiler entry point on a single file"

    parser.add_argument(
        "--batch", action="store_true", help="Run non-interactively and exit"
    )
    parser.add_argument(
        "-L",
        dest="search_paths",
        action="append",
        default=[],
        help="Add a directory to the module search path",
    )
    parser.add_argument("-l", dest="load", required=True, help="File to load")
    parser.add_argument(
        "-f", dest="function", required=True, help="Entry point to call"
    )
    parser.add_argument("target", help="File to compile")


def load_backend(path: str):
    spec = importlib.util.spec_from_file_location(Path(path).stem, path)
    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot load {path}")

    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="lisp_server.batch")
    add_arguments(parser)
    args = parser.parse_args(argv)

    sys.path[:0] = args.search_paths

    try:
        backend = load_backend(args.load)
    except Exception as exc:
        print(f"Failed to load {args.load}: {exc}", file=sys.stderr)
        return 2

    entrypoint = getattr(backend, args.function.replace("-", "_"), None)
    if not callable(entrypoint):
        print(f"Unknown entry point {args.function} in {args.load}", file=sys.stderr)
        return 2

    try:
        entrypoint(args.target)
    except Exception:
        traceback.print_exc()
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
