from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Optional

from invoicing.models import Branch
from invoicing.rate_engine import RateTable


DATA_DIR = Path(__file__).parent / "data"
DEFAULT_RATES_PATH = DATA_DIR / "rates.json"
DEFAULT_BRANCHES_PATH = DATA_DIR / "branches.json"


def get_env(name: str) -> Optional[str]:
    value = os.getenv(name)
    return value.strip() if value else None


def env_flag(name: str) -> bool:
    return (get_env(name) or "").lower() in {"1", "true", "yes", "on"}


def load_rate_table(path: str | Path | None = None) -> RateTable:
    path = Path(path or get_env("RATE_TABLE_PATH") or DEFAULT_RATES_PATH)
    with path.open(encoding="utf-8") as fh:
        return RateTable.from_dict(json.load(fh))


def load_branches(path: str | Path | None = None) -> list[Branch]:
    path = Path(path or get_env("BRANCHES_PATH") or DEFAULT_BRANCHES_PATH)
    with path.open(encoding="utf-8") as fh:
        data = json.load(fh)
    if not isinstance(data, list):
        raise ValueError(f"Branches file must hold a list: {path}")
    return [Branch.model_validate(item) for item in data]
