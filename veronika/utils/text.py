from __future__ import annotations

import re
from typing import Any


PLAN_CREDITS_RE = re.compile(r'(\d+)\s*credits', re.IGNORECASE)


def normalize_email(value: Any) -> str:
    return str(value or '').strip().lower()


def plan_label(credits: int) -> str:
    return f'{credits} Credits'


def credits_from_plan_label(label: str | None) -> int:
    match = PLAN_CREDITS_RE.search(label or '')
    return int(match.group(1)) if match else 0
