"""
Load the company's crop -> market code catalogue (idempotent).

Usage:
  python scripts/seed_crops.py
"""
from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.seedtrace.constants import CROP_MARKET_CODES  # noqa: E402
from app.seedtrace.models import Base  # noqa: E402,F401
from app.seedtrace.modules.crops.service import seed_crop_catalogue  # noqa: E402
from scripts._db_utils import resolve_database_url, script_session  # noqa: E402


def seed_crops(*, database_url: str | None = None) -> tuple[int, int]:
    with script_session(resolve_database_url(database_url)) as s:
        added = seed_crop_catalogue(s, CROP_MARKET_CODES)
    print(f"Crop catalogue: {added[0]} crops and {added[1]} varieties added.")
    return added


def main() -> None:
    seed_crops()


if __name__ == "__main__":
    main()
