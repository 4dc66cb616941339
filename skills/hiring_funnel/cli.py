"""CLI for hiring_funnel package."""

from __future__ import annotations

import argparse
import logging
import os

from .pipeline import run
from .types import DashboardResult, MonthlyMetrics


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Build monthly hiring funnel metrics from ATS counts")
    parser.add_argument("--source", choices=["ats", "sample"], default="ats")
    parser.add_argument("--jobs", default=os.getenv("ATS_JOBS_PATH", "jobs.json"), help="Job catalogue (JSON or CSV)")
    parser.add_argument("--job-id", action="append", dest="job_ids", help="Restrict to a job id (repeatable)")
    parser.add_argument("--token", help="ATS bearer token (defaults to $ATS_API_TOKEN)")
    parser.add_argument("--start-month", help="YYYY-MM")
    parser.add_argument("--end-month", help="YYYY-MM")
    parser.add_argument("--out", default="output")
    parser.add_argument("--combine", action="store_true", help="Also compute an all-months roll-up")
    parser.add_argument("--dry-run", action="store_true", help="Fetch/aggregate only; do not write files")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


def _print_month(m: MonthlyMetrics) -> None:
    print(
        f"{m.month_key} {m.month}: applicants={m.total_applicants} processed={m.processed} "
        f"scheduled={m.scheduled} attended={m.attended} no_show={m.no_show} "
        f"l1_select={m.l1_select} l1_reject={m.l1_reject} l2_selected={m.l2_selected} "
        f"l2_rejected={m.l2_rejected} offers={m.total_offers} rejected={m.total_rejected} "
        f"active_pipeline={m.active_pipeline}"
    )
    print(
        f"  processed_to_scheduled={m.processed_to_scheduled} l1_no_show_rate={m.l1_no_show_rate} "
        f"l1_rejection_rate={m.l1_rejection_rate} l2_rejection_rate={m.l2_rejection_rate} "
        f"offer_percentage={m.offer_percentage}"
    )


def _print_summary(result: DashboardResult) -> None:
    print("Summary (newest month first)")
    for month in result.months:
        _print_month(month)
    if result.combined is not None:
        print("Combined")
        _print_month(result.combined)


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    logging.basicConfig(level=args.log_level, format="%(asctime)s %(levelname)s %(name)s %(message)s")

    if bool(args.start_month) != bool(args.end_month):
        raise SystemExit("Provide both --start-month and --end-month, or neither")

    token = args.token or os.getenv("ATS_API_TOKEN", "")
    if args.source == "ats":
        print("ATS run started. Batches are paced to respect rate limits; large job lists take a while.")
    else:
        print("Run started.")

    result = run(
        source=args.source,
        jobs_path=args.jobs,
        token=token,
        start_month=args.start_month,
        end_month=args.end_month,
        job_ids=args.job_ids,
        out_dir=args.out,
        combine=args.combine,
        dry_run=args.dry_run,
    )

    print(f"Run ID: {result.run_id}")
    _print_summary(result)
    if args.dry_run:
        print("dry_run=true (no files written)")
    else:
        print(f"monthly_metrics.json: {result.artifacts['json_path']}")
    if result.cancelled:
        print("Run was cancelled; only completed months are shown.")
    signal = result.degraded
    if signal.degraded or signal.unknown_stage_codes:
        print("Warnings:")
        if signal.missing_credential:
            print("- no ATS token provided; nothing was fetched (use --token or ATS_API_TOKEN)")
        if signal.auth_failures:
            print(f"- {signal.auth_failures} request(s) were rejected as unauthorized; counts may be incomplete")
        if signal.transport_failures:
            print(f"- {signal.transport_failures} request(s) failed; counts may be undercounted")
        if signal.unknown_stage_codes:
            print(f"- unknown stage codes ignored: {', '.join(sorted(signal.unknown_stage_codes))}")


if __name__ == "__main__":
    main()
