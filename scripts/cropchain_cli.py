#!/usr/bin/env python3
"""
Operational CLI for the CropChain kernel.

Subcommands:
    init-db            create the sequence_counters and batches tables
    seed               create a few demo batches and walk one through the chain
    show BATCH_ID      print a batch and its timeline
    list               print every batch, newest first

Settings come from cropchain_config (defaults.yaml plus
CROPCHAIN_DATABASE_URL / DATABASE_URL).

Usage:
    python3 scripts/cropchain_cli.py init-db
    python3 scripts/cropchain_cli.py seed
    python3 scripts/cropchain_cli.py show CROP-2024-001
"""

import argparse
import sys
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path

# ---------------------------------------------------------------------------
# Project root on sys.path
# ---------------------------------------------------------------------------
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from cropchain_config import load_settings  # noqa: E402
from cropchain_kernel.db.engine import create_tables  # noqa: E402
from cropchain_kernel.domain.dtos import (  # noqa: E402
    BatchDraft,
    BatchInfo,
    CallerIdentity,
    UpdateSpec,
)
from cropchain_kernel.domain.stages import CallerRole  # noqa: E402
from cropchain_kernel.exceptions import CropChainError  # noqa: E402
from cropchain_services import BatchService, build_batch_service  # noqa: E402

DEMO_FARMER = CallerIdentity(
    caller_id="farmer-demo",
    role=CallerRole.FARMER,
    farmer_id="FARMER-001",
    display_name="Ravi Kumar",
)


def _print_batch(info: BatchInfo) -> None:
    flag = "  [RECALLED]" if info.is_recalled else ""
    print(f"{info.batch_id}{flag}")
    print(f"  crop:      {info.crop_type.value}  qty: {info.quantity}")
    print(f"  farmer:    {info.farmer_id}  ({info.farmer_name or '-'})")
    print(f"  origin:    {info.origin}")
    print(f"  harvested: {info.harvest_date.isoformat()}")
    print(f"  stage:     {info.current_stage.value}")
    print(f"  hash:      {info.integrity_hash}")
    for i, update in enumerate(info.updates, 1):
        notes = f" -- {update.notes}" if update.notes else ""
        print(
            f"    {i}. {update.stage.value:<9} {update.actor} @ {update.location}"
            f" ({update.timestamp.isoformat()}){notes}"
        )


def _seed(service: BatchService) -> None:
    today = service.clock.now_utc().date()
    drafts = [
        BatchDraft(
            crop_type="rice",
            quantity=Decimal("1200"),
            harvest_date=today - timedelta(days=3),
            origin="Thanjavur, Tamil Nadu",
            farmer_name="Ravi Kumar",
            certifications="Organic",
        ),
        BatchDraft(
            crop_type="wheat",
            quantity=Decimal("850.5"),
            harvest_date=today - timedelta(days=10),
            origin="Ludhiana, Punjab",
            farmer_name="Ravi Kumar",
        ),
        BatchDraft(
            crop_type="tomato",
            quantity=300,
            harvest_date=today,
            origin="Kolar, Karnataka",
            description="Hybrid variety, early harvest",
        ),
    ]
    created = [service.create_batch(d, DEMO_FARMER) for d in drafts]
    first = created[0].batch_id
    service.update_batch(
        DEMO_FARMER,
        first,
        UpdateSpec(stage="mandi", actor="Thanjavur APMC", location="Thanjavur Mandi"),
    )
    service.update_batch(
        DEMO_FARMER,
        first,
        UpdateSpec(stage="transport", actor="Sri Logistics", location="NH-45"),
    )
    for info in created:
        print(f"created {info.batch_id}")


def main() -> int:
    parser = argparse.ArgumentParser(description="CropChain kernel operations")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Settings YAML (default: packaged defaults.yaml)",
    )
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("init-db", help="Create tables")
    sub.add_parser("seed", help="Create demo batches")
    show = sub.add_parser("show", help="Show one batch")
    show.add_argument("batch_id")
    sub.add_parser("list", help="List all batches")
    args = parser.parse_args()

    service = build_batch_service(load_settings(args.config))

    try:
        if args.command == "init-db":
            create_tables()
            print("tables created")
        elif args.command == "seed":
            create_tables()
            _seed(service)
        elif args.command == "show":
            _print_batch(service.get_by_identifier(args.batch_id))
        elif args.command == "list":
            for info in service.list_all():
                _print_batch(info)
    except CropChainError as exc:
        print(f"error [{exc.code}]: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
