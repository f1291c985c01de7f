"""Lightweight CLI helpers for inspecting exam results."""
from __future__ import annotations

import argparse
import sys

from storage.export import to_csv
from storage.reattempts import list_reattempt_requests
from storage.results import list_results


def tail_results(limit: int = 20) -> None:
    for record in list_results(limit=limit):
        verdict = "PASS" if record.passed else "FAIL"
        print(
            f"[{record.date_iso}] {record.session_id} {record.candidate_name} "
            f"{record.score}/{record.total} ({record.percent}%) {verdict} "
            f"reason={record.finish_reason.value} leaves={record.leave_count}"
        )


def tail_reattempts(limit: int = 20) -> None:
    for request in list_reattempt_requests(limit):
        print(
            f"[{request.ts}] {request.session_id} {request.candidate_name} "
            f"{request.score}/{request.total} reason={request.finish_reason.value}"
        )


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Inspect the exam result log")
    parser.add_argument("--tail-results", type=int, metavar="N", help="Show the latest N exam results")
    parser.add_argument("--tail-reattempts", type=int, metavar="N", help="Show the latest N re-attempt requests")
    parser.add_argument("--csv", action="store_true", help="Write every result as CSV to stdout")
    args = parser.parse_args(argv)

    if args.tail_results:
        tail_results(args.tail_results)
    if args.tail_reattempts:
        tail_reattempts(args.tail_reattempts)
    if args.csv:
        sys.stdout.write(to_csv(list_results()))


if __name__ == "__main__":
    main()
