"""Approval matrix — deterministic rule lookup for spending requests.

A rule maps (category, amount range, optional organization) to an ordered
list of approval levels. When several rules match, the highest priority
wins and ties go to the rule declared first, so the same request always
resolves to the same rule.
"""
import json
import logging
from decimal import Decimal
from functools import lru_cache
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from church_approvals.core.config import settings
from church_approvals.core.exceptions import ApprovalMatrixConfigError, NoApplicableRuleError
from church_approvals.schemas.approval_flow import RequestPriority
from church_approvals.schemas.approval_matrix import (
    ApprovalLevel,
    ApprovalMatrixRule,
    OrganizationScope,
    SpendingCategory,
)

logger = logging.getLogger(__name__)


# ─── Role names ───

SENIOR_PASTOR = "Senior Pastor"
HEAD_PASTOR = "Head Pastor"
COMMITTEE_CHAIR = "Committee Chair"
PRESIDENT = "President"
PARISH_HEAD = "Parish Head"
GROUP_LEADER = "Group Leader"
DEPARTMENT_HEAD = "Department Head"
DEPUTY_HEAD = "Deputy Head"
SECRETARY_GENERAL = "Secretary-General"
TEAM_LEAD = "Team Lead"
FACILITIES_CHAIR = "Facilities Committee Chair"

# Substitutes tried, in order, when nobody on the path holds the role itself.
ALTERNATE_ROLES: dict[str, list[str]] = {
    DEPARTMENT_HEAD: [DEPUTY_HEAD, TEAM_LEAD, "Leader"],
    PARISH_HEAD: ["Deputy Parish Head", GROUP_LEADER, DEPARTMENT_HEAD],
    GROUP_LEADER: ["Deputy Group Leader", DEPARTMENT_HEAD, DEPUTY_HEAD],
    COMMITTEE_CHAIR: ["Vice Chair", SECRETARY_GENERAL, "Secretary"],
    PRESIDENT: ["Vice President", SECRETARY_GENERAL, COMMITTEE_CHAIR],
}

# Last resort, searched at the hierarchy root only.
FINAL_ESCALATION_ROLES: list[str] = [
    SENIOR_PASTOR,
    HEAD_PASTOR,
    "Pastor",
    COMMITTEE_CHAIR,
    PRESIDENT,
    SECRETARY_GENERAL,
]

# Higher is more senior. Roles not listed rank 0.
ROLE_SENIORITY: dict[str, int] = {
    SENIOR_PASTOR: 5, HEAD_PASTOR: 5, "Associate Pastor": 5, "Evangelist": 5,
    COMMITTEE_CHAIR: 4, PRESIDENT: 4, "Director": 4, FACILITIES_CHAIR: 4,
    PARISH_HEAD: 3, GROUP_LEADER: 3, DEPARTMENT_HEAD: 3,
    "Division Head": 2, DEPUTY_HEAD: 2, SECRETARY_GENERAL: 2,
    TEAM_LEAD: 1, "Leader": 1, "Secretary": 1,
}


def role_seniority(role_name: str) -> int:
    return ROLE_SENIORITY.get(role_name, 0)


# ─── Built-in matrix (declaration order is the tie-break order) ───

DEFAULT_APPROVAL_MATRIX: list[ApprovalMatrixRule] = [
    ApprovalMatrixRule(
        key="personnel",
        name="Personnel costs",
        categories=[SpendingCategory.salary, SpendingCategory.bonus, SpendingCategory.benefits],
        min_amount=Decimal("1"),
        priority=100,
        levels=[
            ApprovalLevel(level_order=1, required_roles=[SECRETARY_GENERAL],
                          organization_scope=OrganizationScope.root, timeout_hours=48),
            ApprovalLevel(level_order=2, required_roles=[SENIOR_PASTOR],
                          organization_scope=OrganizationScope.root, timeout_hours=72),
        ],
    ),
    ApprovalMatrixRule(
        key="construction",
        name="Construction and facilities",
        categories=[SpendingCategory.construction, SpendingCategory.facilities],
        min_amount=Decimal("1"),
        priority=90,
        levels=[
            ApprovalLevel(level_order=1, required_roles=[DEPARTMENT_HEAD],
                          organization_scope=OrganizationScope.same, timeout_hours=24),
            ApprovalLevel(level_order=2, required_roles=[PARISH_HEAD],
                          organization_scope=OrganizationScope.parent, timeout_hours=48),
            ApprovalLevel(level_order=3, required_roles=[FACILITIES_CHAIR],
                          organization_scope=OrganizationScope.root, timeout_hours=72),
            ApprovalLevel(level_order=4, required_roles=[SENIOR_PASTOR],
                          organization_scope=OrganizationScope.root, timeout_hours=72),
        ],
    ),
    ApprovalMatrixRule(
        key="ministry_expense_large",
        name="Large ministry expenses (over 500,000)",
        categories=[SpendingCategory.ministry, SpendingCategory.equipment, SpendingCategory.event],
        min_amount=Decimal("500001"),
        priority=80,
        levels=[
            ApprovalLevel(level_order=1, required_roles=[DEPARTMENT_HEAD],
                          organization_scope=OrganizationScope.same, timeout_hours=24),
            ApprovalLevel(level_order=2, required_roles=[PARISH_HEAD, GROUP_LEADER],
                          organization_scope=OrganizationScope.parent, timeout_hours=48),
            ApprovalLevel(level_order=3, required_roles=[COMMITTEE_CHAIR, PRESIDENT],
                          organization_scope=OrganizationScope.root, timeout_hours=72),
        ],
    ),
    ApprovalMatrixRule(
        key="ministry_expense_medium",
        name="Medium ministry expenses (100,001 - 500,000)",
        categories=[SpendingCategory.ministry, SpendingCategory.supplies, SpendingCategory.equipment],
        min_amount=Decimal("100001"),
        max_amount=Decimal("500000"),
        priority=70,
        levels=[
            ApprovalLevel(level_order=1, required_roles=[DEPARTMENT_HEAD],
                          organization_scope=OrganizationScope.same, timeout_hours=24),
            ApprovalLevel(level_order=2, required_roles=[PARISH_HEAD, GROUP_LEADER],
                          organization_scope=OrganizationScope.parent, timeout_hours=48),
        ],
    ),
    ApprovalMatrixRule(
        key="utilities_maintenance",
        name="Utilities and maintenance",
        categories=[SpendingCategory.utilities, SpendingCategory.maintenance],
        max_amount=Decimal("1000000"),
        priority=60,
        levels=[
            ApprovalLevel(level_order=1, required_roles=[SECRETARY_GENERAL],
                          organization_scope=OrganizationScope.root, timeout_hours=24),
        ],
    ),
    ApprovalMatrixRule(
        key="ministry_expense_small",
        name="Small ministry expenses (up to 100,000)",
        categories=[SpendingCategory.ministry, SpendingCategory.supplies],
        max_amount=Decimal("100000"),
        priority=50,
        levels=[
            ApprovalLevel(level_order=1, required_roles=[DEPARTMENT_HEAD, DEPUTY_HEAD, TEAM_LEAD],
                          organization_scope=OrganizationScope.same, timeout_hours=24),
        ],
    ),
    ApprovalMatrixRule(
        key="other",
        name="Other general expenses",
        categories=[SpendingCategory.other],
        max_amount=Decimal("50000"),
        priority=10,
        levels=[
            ApprovalLevel(level_order=1, required_roles=[DEPARTMENT_HEAD, DEPUTY_HEAD, SECRETARY_GENERAL],
                          organization_scope=OrganizationScope.same, timeout_hours=24),
        ],
    ),
]


# ─── Matrix loading ───

_rules_adapter = TypeAdapter(list[ApprovalMatrixRule])


def load_approval_matrix(path: str | Path) -> list[ApprovalMatrixRule]:
    """Load and validate a JSON list of matrix rules.

    Raises:
        ApprovalMatrixConfigError: file unreadable, not JSON, or invalid rules.
    """
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ApprovalMatrixConfigError(f"Cannot read approval matrix from {path}: {exc}") from exc

    try:
        rules = _rules_adapter.validate_python(raw)
    except ValidationError as exc:
        raise ApprovalMatrixConfigError(f"Invalid approval matrix in {path}: {exc}") from exc

    keys = [rule.key for rule in rules]
    if len(keys) != len(set(keys)):
        raise ApprovalMatrixConfigError(f"Duplicate rule keys in approval matrix {path}.")

    logger.info("Loaded %d approval matrix rules from %s", len(rules), path)
    return rules


@lru_cache
def _load_configured_matrix(path: str) -> tuple[ApprovalMatrixRule, ...]:
    return tuple(load_approval_matrix(path))


def get_approval_matrix() -> list[ApprovalMatrixRule]:
    """Return the configured matrix, or the built-in one when no file is set."""
    if settings.APPROVAL_MATRIX_PATH:
        return list(_load_configured_matrix(settings.APPROVAL_MATRIX_PATH))
    return list(DEFAULT_APPROVAL_MATRIX)


# ─── Lookup ───

def find_approval_rule(
    amount: Decimal,
    category: SpendingCategory,
    organization_id: str | None = None,
    rules: list[ApprovalMatrixRule] | None = None,
) -> ApprovalMatrixRule | None:
    """Return the best matching rule, or None.

    Bounds are inclusive. ``sorted`` is stable, so equal priorities keep
    declaration order.
    """
    if rules is None:
        rules = get_approval_matrix()

    amount = Decimal(str(amount))
    eligible = [rule for rule in rules if rule.matches(amount, category, organization_id)]
    if not eligible:
        return None

    return sorted(eligible, key=lambda rule: rule.priority, reverse=True)[0]


def require_approval_rule(
    amount: Decimal,
    category: SpendingCategory,
    organization_id: str | None = None,
    rules: list[ApprovalMatrixRule] | None = None,
) -> ApprovalMatrixRule:
    rule = find_approval_rule(amount, category, organization_id, rules)
    if rule is None:
        raise NoApplicableRuleError(
            f"No applicable approval rule for category '{category.value}' and amount {amount}."
        )
    return rule


def default_priority_for(category: SpendingCategory) -> RequestPriority:
    """Default request priority by spending category."""
    if category in (SpendingCategory.construction, SpendingCategory.salary):
        return RequestPriority.high
    if category in (SpendingCategory.utilities, SpendingCategory.maintenance):
        return RequestPriority.normal
    if category in (SpendingCategory.supplies, SpendingCategory.other):
        return RequestPriority.low
    return RequestPriority.normal
