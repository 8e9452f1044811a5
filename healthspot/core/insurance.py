"""Insurance catalog and acceptance checks."""

import random
from typing import Any, Iterable, Mapping, NamedTuple


class InsurancePlan(NamedTuple):
    id: str
    name: str
    type: str


INSURANCE_PROVIDERS: tuple[InsurancePlan, ...] = (
    InsurancePlan("medicare", "Medicare", "government"),
    InsurancePlan("medicaid", "Medicaid", "government"),
    InsurancePlan("bluecross", "Blue Cross Blue Shield", "private"),
    InsurancePlan("aetna", "Aetna", "private"),
    InsurancePlan("cigna", "Cigna", "private"),
    InsurancePlan("united", "UnitedHealthcare", "private"),
    InsurancePlan("humana", "Humana", "private"),
    InsurancePlan("tricare", "Tricare", "military"),
    InsurancePlan("kaiser", "Kaiser Permanente", "private"),
    InsurancePlan("anthem", "Anthem", "private"),
)

_PLANS_BY_ID = {plan.id: plan for plan in INSURANCE_PROVIDERS}


def parse_insurance_filter(value: str | Iterable[str] | None) -> list[str]:
    """Normalize ``"aetna,cigna"`` or a list of ids into a clean id list."""
    if not value:
        return []
    parts = value.split(",") if isinstance(value, str) else list(value)
    return [part.strip() for part in parts if part and part.strip()]


def _accepted(provider: Any) -> list[str] | None:
    if isinstance(provider, Mapping):
        accepted = provider.get("insurance_accepted", provider.get("insuranceAccepted"))
    else:
        accepted = getattr(provider, "insurance_accepted", None)
    if accepted is None or isinstance(accepted, str):
        return None
    return list(accepted)


def check_insurance_acceptance(
    provider: Any, insurance_ids: str | Iterable[str] | None
) -> bool:
    """Return True when no filter is given or the provider accepts any requested plan."""
    requested = parse_insurance_filter(insurance_ids)
    if not requested:
        return True
    accepted = _accepted(provider)
    if not accepted:
        return False
    return any(plan_id in accepted for plan_id in requested)


def generate_placeholder_insurance(
    count: int = 3, rng: random.Random | None = None
) -> list[str]:
    """Pick a random subset of plan ids.

    DEMO STUB: the Places API carries no insurance data, so providers are
    tagged with made-up plans. Never treat these values as real coverage.
    """
    chooser = rng or random
    count = max(0, min(count, len(INSURANCE_PROVIDERS)))
    return [plan.id for plan in chooser.sample(INSURANCE_PROVIDERS, count)]  # nosec B311


def format_insurance(insurance_ids: Iterable[str] | None) -> list[dict[str, str]]:
    if not insurance_ids or isinstance(insurance_ids, str):
        return []
    formatted = []
    for plan_id in insurance_ids:
        plan = _PLANS_BY_ID.get(plan_id)
        if plan:
            formatted.append(plan._asdict())
        else:
            formatted.append({"id": plan_id, "name": plan_id, "type": "unknown"})
    return formatted
