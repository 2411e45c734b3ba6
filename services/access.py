from __future__ import annotations

from core.plans import is_pro_or_premium
from schemas.settings import UserSettings


class FeatureAccessDenied(Exception):
    def __init__(self, feature: str):
        super().__init__("Access to this feature is not allowed on your current plan or settings.")
        self.feature = feature


def check_feature_access(plan: str, settings: UserSettings, feature: str, *, raise_if_denied: bool = True) -> bool:
    is_pro = is_pro_or_premium(plan)

    if feature == "ai_memory":
        allowed = is_pro and settings.ai_memory_enabled
    elif feature == "summary_generation":
        allowed = settings.summary_generation_enabled
    elif feature == "mood_analysis":
        allowed = settings.mood_analysis_enabled
    elif feature in {"semantic_search", "export_markdown", "export_pdf", "ai_chat"}:
        allowed = is_pro
    else:
        allowed = False

    if not allowed and raise_if_denied:
        raise FeatureAccessDenied(feature)
    return allowed
