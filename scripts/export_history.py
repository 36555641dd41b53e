#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from invoicing.archive import HistoryArchive
from invoicing.config import get_env, load_branches
from invoicing.export import export_csv, export_filename
from invoicing.ledger_client import fetch_history


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Export the invoice archive to CSV.")
    parser.add_argument("--search", default="", help="Filter term, e.g. an invoice number or consignee name")
    parser.add_argument("--output", default=None, help="Output path, default GGX_Archive_<today>.csv")
    parser.add_argument("--ledger-url", default=get_env("LEDGER_HISTORY_URL") or get_env("LEDGER_URL"), required=False)
    parser.add_argument("--branches", default=None, help="Branches JSON file")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)

    if not args.ledger_url:
        raise SystemExit("Missing ledger URL: pass --ledger-url or set LEDGER_URL")

    branches = load_branches(args.branches)
    archive = HistoryArchive()
    archive.refresh(lambda: fetch_history(branches, url=args.ledger_url))

    entries = archive.search(args.search)
    output = Path(args.output or export_filename())
    output.write_text(export_csv(entries), encoding="utf-8")

    stats = archive.stats(args.search)
    print(json.dumps({"output": str(output), **stats.model_dump()}, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
