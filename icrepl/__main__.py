import argparse
import logging
import os
import sys

from icrepl.icrepl_ast import Config
from icrepl.icrepl_runtime import ScriptRunner


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="icrepl", description="Run icrepl scripts or start an interactive session.")
    parser.add_argument("script", nargs="?", help="script file to run; starts a REPL when omitted")
    parser.add_argument("-v", "--verbose", action="store_true", help="echo commands and print full values with timings")
    parser.add_argument("--config", metavar="TEXT", help="inline TOML or a .toml/.yaml/.yml/.json file")
    return parser


def repl(runner: ScriptRunner) -> None:
    print("icrepl v0.1")
    print("Type 'exit' or press Ctrl+D to quit.")
    while True:
        try:
            line = input(">> ").strip()
        except EOFError:
            print("\nExiting.")
            break
        if not line:
            continue
        if line == "exit":
            break
        result = runner.handle_script(line)
        if result.status == 'error':
            print(result.format_error(), file=sys.stderr)


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if os.environ.get("ICREPL_DEBUG") else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    runner = ScriptRunner(verbose=args.verbose)
    if args.config is not None:
        result = runner.execute(Config(args.config))
        if result.status == 'error':
            print(result.format_error(), file=sys.stderr)
            return 1
    if args.script is None:
        repl(runner)
        return 0
    result = runner.run_file(args.script)
    if result.status == 'error':
        print(result.format_error(), file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nExiting.")
