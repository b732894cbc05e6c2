from __future__ import annotations

# Single entrypoint.
#
#   python -m qup.app serve --seed seed.json
#   python -m qup.app request enter_queue --token TOKEN --business "Cafe"
#
# Each subcommand forwards its remaining options to the module that owns it,
# so `python -m qup.manager` and `python -m qup.client` keep working on their
# own (use them directly for the full option list).

import argparse
import sys


def main() -> None:
    parser = argparse.ArgumentParser(description="qup live queues (MQTT) - main entrypoint")
    sub = parser.add_subparsers(dest="cmd", required=True)
    sub.add_parser("serve", help="Run the queue service (options: python -m qup.manager -h)", add_help=False)
    sub.add_parser("request", help="Send one request to a running service (options: python -m qup.client -h)", add_help=False)

    args, rest = parser.parse_known_args()

    if args.cmd == "serve":
        from .manager import main as run
    else:
        from .client import main as run

    _dispatch_to_module_main(run, rest)


def _dispatch_to_module_main(module_main, argv: list[str]) -> None:
    old_argv = sys.argv[:]
    try:
        sys.argv = [old_argv[0], *argv]
        module_main()
    finally:
        sys.argv = old_argv


if __name__ == "__main__":
    main()
