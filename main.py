"""
MathGPT Photosolver — Entry point.

Solve the equation in a photo for a registered account:

    python main.py photo.png --email ada@example.com
"""

import argparse
import asyncio
import sys

import config
from accounts.storage import AccountStore
from solver.pipeline import PipelineError
from solver.service import SolveService, SolveStatus, UnknownAccount


def _print_progress(fraction: float) -> None:
    sys.stdout.write(f"\rRecognizing text... {round(fraction * 100):3d}%")
    sys.stdout.flush()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Solve a photographed equation.")
    parser.add_argument("image", help="path to the image file")
    parser.add_argument("--email", required=True, help="account email")
    parser.add_argument("--data-file", default=None, help="account database (JSON)")
    return parser


def main(argv=None) -> int:
    args = _build_parser().parse_args(argv)
    config.configure_logging()

    with open(args.image, "rb") as f:
        image = f.read()

    service = SolveService(AccountStore(args.data_file))
    try:
        result = asyncio.run(service.solve(args.email, image, on_progress=_print_progress))
    except UnknownAccount:
        print(f"No account registered for {args.email}.")
        return 2
    except PipelineError as e:
        print(f"\nError: {e.message}")
        return 1

    if result.status is SolveStatus.DENIED:
        print("You have exhausted your free trial. "
              "Please subscribe to continue using MathGPT.")
        return 2

    print()
    print(result.outcome.summary())
    if not result.entitlement.subscribed:
        print(f"Free solves remaining: {result.entitlement.free_uses_remaining}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
