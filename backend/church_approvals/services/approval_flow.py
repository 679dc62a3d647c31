"""Approval flow generation.

Turns a spending request into an ordered list of pending approval steps:
match a matrix rule, walk the requester's organization path, find one
approver per level (escalating when a required approver is missing), then
collapse repeated approvers. The functions here only plan; persisting
steps and driving approve/reject decisions belong to the caller.
"""
import logging
import math
from dataclasses import dataclass, field

from church_approvals.core.config import settings
from church_approvals.core.exceptions import MissingApproverError
from church_approvals.rules.approval_matrix import (
    ALTERNATE_ROLES,
    FINAL_ESCALATION_ROLES,
    require_approval_rule,
)
from church_approvals.schemas.approval_flow import (
    ApprovalFlowPreview,
    ApprovalStep,
    SpendingRequest,
    StepStatus,
)
from church_approvals.schemas.approval_matrix import (
    ApprovalLevel,
    ApprovalMatrixRule,
    OrganizationScope,
)
from church_approvals.services.directory import (
    ApproverCandidate,
    OrganizationDirectory,
    OrganizationNode,
)
from church_approvals.services.hierarchy import OrganizationPath, resolve_organization_path

logger = logging.getLogger(__name__)

HOURS_PER_DAY = 24


@dataclass
class StepPlan:
    steps: list[ApprovalStep] = field(default_factory=list)
    unresolved_levels: list[int] = field(default_factory=list)
    duplicate_count: int = 0
    diagnostics: list[str] = field(default_factory=list)


# ─── Entry point ───

def generate_approval_flow(
    directory: OrganizationDirectory,
    request: SpendingRequest,
    matrix: list[ApprovalMatrixRule] | None = None,
    block_on_missing: bool | None = None,
) -> ApprovalFlowPreview:
    """Build the approval flow preview for a spending request.

    Args:
        directory: Organization directory to query.
        request: The spending request.
        matrix: Rules to match against; defaults to the configured matrix.
        block_on_missing: Raise instead of warning when a required level has
            no approver. Defaults to BLOCK_ON_MISSING_APPROVER.

    Raises:
        OrganizationNotFoundError: unknown requester organization.
        NoApplicableRuleError: no matrix rule matches the request.
        DirectoryLookupError: the directory failed to answer.
        MissingApproverError: only when block_on_missing is set.
    """
    if block_on_missing is None:
        block_on_missing = settings.BLOCK_ON_MISSING_APPROVER

    path = resolve_organization_path(directory, request.organization_id)
    rule = require_approval_rule(
        request.amount, request.category, request.organization_id, matrix
    )
    logger.info(
        "Approval rule '%s' matched: requester=%s organization=%s category=%s amount=%s",
        rule.key, request.requester_id, request.organization_id,
        request.category.value, request.amount,
    )

    plan = plan_approval_steps(directory, path, rule)

    if plan.unresolved_levels and block_on_missing:
        raise MissingApproverError(
            f"No approver found for required level(s) {plan.unresolved_levels} "
            f"of rule '{rule.key}'.",
            plan.unresolved_levels,
        )

    estimated_days = calculate_estimated_days(plan.steps)
    warnings = build_warnings(plan, estimated_days)
    warnings.extend(path.diagnostics)

    return ApprovalFlowPreview(
        rule_key=rule.key,
        steps=plan.steps,
        total_steps=len(plan.steps),
        estimated_days=estimated_days,
        warnings=warnings,
    )


# ─── Level-by-level planning ───

def plan_approval_steps(
    directory: OrganizationDirectory,
    path: OrganizationPath,
    rule: ApprovalMatrixRule,
) -> StepPlan:
    plan = StepPlan()
    steps: list[ApprovalStep] = []

    for level in rule.ordered_levels():
        target = resolve_target_organization(path, level.organization_scope)
        if target is None:
            msg = (
                f"Level {level.level_order} of rule '{rule.key}' has no target organization "
                f"for scope '{level.organization_scope}'; level skipped."
            )
            logger.warning(msg)
            plan.diagnostics.append(msg)
            continue

        candidate = directory.find_approver(target.id, level.required_roles)
        escalated = False

        if candidate is None:
            if not level.is_required:
                logger.debug(
                    "Optional level %s: no %s at %s, omitted.",
                    level.level_order, level.required_roles, target.name,
                )
                continue
            candidate = escalate_missing_approver(directory, path, target, level)
            escalated = candidate is not None

        if candidate is None:
            logger.warning(
                "No approver for required level %s (roles=%s, target=%s) after escalation.",
                level.level_order, level.required_roles, target.name,
            )
            plan.unresolved_levels.append(level.level_order)
            continue

        steps.append(_build_step(level, candidate, escalated))

    unique = remove_duplicate_approvers(steps)
    plan.duplicate_count = len(steps) - len(unique)
    plan.steps = unique
    return plan


def resolve_target_organization(
    path: OrganizationPath, scope: OrganizationScope
) -> OrganizationNode | None:
    """Parent and root fall back to the requester's own organization."""
    if scope == OrganizationScope.same:
        return path.own
    if scope == OrganizationScope.parent:
        return path.parent
    if scope == OrganizationScope.root:
        return path.root
    return None


def escalate_missing_approver(
    directory: OrganizationDirectory,
    path: OrganizationPath,
    target: OrganizationNode,
    level: ApprovalLevel,
) -> ApproverCandidate | None:
    """Find a substitute approver for a required level.

    Order: the same roles at each ancestor above the target, then each
    alternate role set across the target and its ancestors, then the final
    escalation roles at the root.
    """
    start = path.index_of(target.id) or 0
    chain = path.nodes[start:]

    for org in chain[1:]:
        candidate = directory.find_approver(org.id, level.required_roles)
        if candidate is not None:
            logger.info(
                "Level %s escalated from %s to %s (%s).",
                level.level_order, target.name, org.name, candidate.role_name,
            )
            return candidate

    for alternate_roles in alternate_role_sets(level.required_roles):
        for org in chain:
            candidate = directory.find_approver(org.id, alternate_roles)
            if candidate is not None:
                logger.info(
                    "Level %s filled by alternate role %s at %s.",
                    level.level_order, candidate.role_name, org.name,
                )
                return candidate

    candidate = directory.find_approver(path.root.id, FINAL_ESCALATION_ROLES)
    if candidate is not None:
        logger.info(
            "Level %s escalated to final approver %s (%s) at %s.",
            level.level_order, candidate.person_name, candidate.role_name, path.root.name,
        )
    return candidate


def alternate_role_sets(required_roles: list[str]) -> list[list[str]]:
    return [ALTERNATE_ROLES[role] for role in required_roles if role in ALTERNATE_ROLES]


def _build_step(
    level: ApprovalLevel, candidate: ApproverCandidate, escalated: bool
) -> ApprovalStep:
    return ApprovalStep(
        step_order=level.level_order,
        approver_id=candidate.person_id,
        approver_name=candidate.person_name,
        approver_role=candidate.role_name,
        approver_organization_id=candidate.organization_id,
        organization_name=candidate.organization_name,
        status=StepStatus.pending,
        is_required=level.is_required,
        is_parallel=level.is_parallel,
        timeout_hours=level.timeout_hours or settings.DEFAULT_TIMEOUT_HOURS,
        escalated=escalated,
    )


# ─── Post-processing ───

def remove_duplicate_approvers(steps: list[ApprovalStep]) -> list[ApprovalStep]:
    """Keep one step per approver, the one with the highest step order."""
    kept: dict[str, ApprovalStep] = {}
    for step in steps:
        existing = kept.get(step.approver_id)
        if existing is None or step.step_order > existing.step_order:
            if existing is not None:
                logger.info(
                    "Approver %s appears at steps %s and %s; keeping step %s.",
                    step.approver_id, existing.step_order, step.step_order, step.step_order,
                )
            kept[step.approver_id] = step
    return sorted(kept.values(), key=lambda s: s.step_order)


def calculate_estimated_days(steps: list[ApprovalStep]) -> int:
    """Sum step timeouts and round up to whole days (24h = 1 day)."""
    total_hours = sum(step.timeout_hours or settings.DEFAULT_TIMEOUT_HOURS for step in steps)
    return math.ceil(total_hours / HOURS_PER_DAY)


def build_warnings(plan: StepPlan, estimated_days: int) -> list[str]:
    warnings: list[str] = []

    if plan.unresolved_levels:
        warnings.append(
            f"No approver found for {len(plan.unresolved_levels)} required step(s) "
            f"(levels {', '.join(str(o) for o in plan.unresolved_levels)})."
        )

    if estimated_days > settings.LONG_FLOW_WARNING_DAYS:
        warnings.append(
            f"Estimated approval time is {estimated_days} days, "
            f"longer than {settings.LONG_FLOW_WARNING_DAYS} days."
        )

    if plan.duplicate_count:
        warnings.append(
            f"The same approver was assigned to multiple steps; "
            f"{plan.duplicate_count} duplicate step(s) removed."
        )

    warnings.extend(plan.diagnostics)
    return warnings
