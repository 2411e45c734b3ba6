from __future__ import annotations

import os


def _ids_from_env(name: str) -> set[str]:
    return {x.strip() for x in os.getenv(name, "").split(",") if x.strip()}


def resolve_plan(user_id: str) -> str:
    # billing lives with the payment provider; env lists stand in for it
    if user_id in _ids_from_env("PREMIUM_USER_IDS"):
        return "premium"
    if user_id in _ids_from_env("PRO_USER_IDS"):
        return "pro"
    return "free"


def is_pro_or_premium(plan: str) -> bool:
    return plan in {"pro", "premium"}
