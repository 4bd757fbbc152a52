import argparse
import asyncio
import json
import logging

from job_copilot.agent.orchestrator import run_autofill_async, run_snapshot_async
from job_copilot.agent.page_snapshot import PageSnapshot
from job_copilot.models import init_db


def main():
    parser = argparse.ArgumentParser(description="Autofill a job application form")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--url", help="Application page to open in the browser")
    source.add_argument("--snapshot", help="Saved page snapshot (JSON) for an offline dry run")
    parser.add_argument("--output", help="Where to write the filled snapshot after a dry run")
    parser.add_argument("--log-level", default="INFO", help="Python logging level")
    args = parser.parse_args()

    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s %(message)s")
    init_db()

    if args.snapshot:
        with open(args.snapshot, encoding="utf-8") as fh:
            snapshot = PageSnapshot.from_payload(json.load(fh))
        run, driver = asyncio.run(run_snapshot_async(snapshot))
        print(f"Dry run finished: id={run.id} status={run.status} clicks={len(driver.clicks)}")
        if args.output:
            with open(args.output, "w", encoding="utf-8") as fh:
                json.dump(snapshot.to_payload(), fh, indent=2)
        return

    run = asyncio.run(run_autofill_async(args.url))
    print(f"Run finished: id={run.id} url={run.start_url} status={run.status} reason={run.status_reason}")


if __name__ == "__main__":
    main()
