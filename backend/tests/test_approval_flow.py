"""Tests for approval flow generation.

Uses the in-memory directory over the Grace Church -> Music Department ->
Choir Team hierarchy from conftest.
"""
from unittest.mock import MagicMock

import pytest

from church_approvals.core.exceptions import (
    DirectoryLookupError,
    MissingApproverError,
    NoApplicableRuleError,
    OrganizationNotFoundError,
)
from church_approvals.schemas.approval_flow import ApprovalStep, StepStatus
from church_approvals.schemas.approval_matrix import (
    ApprovalLevel,
    ApprovalMatrixRule,
    OrganizationScope,
    SpendingCategory,
)
from church_approvals.services.approval_flow import (
    calculate_estimated_days,
    generate_approval_flow,
    remove_duplicate_approvers,
)
from church_approvals.services.hierarchy import resolve_organization_path

from conftest import CHOIR, MUSIC, ROOT, assign, make_request


# ─── Helpers ──────────────────────────────────────────────────────────────────

def _make_rule(*levels: ApprovalLevel, key: str = "custom") -> ApprovalMatrixRule:
    return ApprovalMatrixRule(key=key, categories=[SpendingCategory.event], levels=list(levels))


def _make_level(order: int, roles: list[str], scope: OrganizationScope, **kwargs) -> ApprovalLevel:
    return ApprovalLevel(level_order=order, required_roles=roles, organization_scope=scope, **kwargs)


def _make_step(order: int, approver_id: str) -> ApprovalStep:
    return ApprovalStep(
        step_order=order,
        approver_id=approver_id,
        approver_name=approver_id,
        approver_role="Leader",
        approver_organization_id=CHOIR.id,
        organization_name=CHOIR.name,
        timeout_hours=24,
    )


# ─── Reference scenarios ──────────────────────────────────────────────────────

def test_small_supplies_request_routes_to_own_team_lead(make_directory):
    directory = make_directory(
        assign("choir-lead", "Team Lead", CHOIR),
        assign("music-head", "Department Head", MUSIC),
    )

    preview = generate_approval_flow(directory, make_request(80000, SpendingCategory.supplies))

    assert preview.rule_key == "ministry_expense_small"
    assert preview.total_steps == 1
    step = preview.steps[0]
    assert step.step_order == 1
    assert step.approver_id == "choir-lead"
    assert step.organization_name == "Choir Team"
    assert step.status == StepStatus.pending
    assert step.escalated is False
    assert preview.estimated_days == 1
    assert preview.warnings == []


def test_medium_request_escalates_missing_department_head(make_directory):
    directory = make_directory(
        assign("music-head", "Department Head", MUSIC),
        assign("root-parish", "Parish Head", ROOT),
    )

    preview = generate_approval_flow(directory, make_request(300000, SpendingCategory.ministry))

    assert preview.rule_key == "ministry_expense_medium"
    assert [s.step_order for s in preview.steps] == [1, 2]
    first, second = preview.steps
    assert first.approver_id == "music-head"
    assert first.organization_name == "Music Department"
    assert first.escalated is True
    assert second.approver_id == "root-parish"
    assert second.organization_name == "Grace Church"
    assert preview.estimated_days == 3
    assert preview.warnings == []


def test_escalation_moves_strictly_up_the_path(make_directory):
    directory = make_directory(
        assign("music-head", "Department Head", MUSIC),
        assign("root-parish", "Parish Head", ROOT),
    )
    path = resolve_organization_path(directory, CHOIR.id)

    preview = generate_approval_flow(directory, make_request(300000, SpendingCategory.ministry))

    # level 1 targets Choir (index 0), level 2 targets Music (index 1)
    targets = {1: 0, 2: 1}
    for step in preview.steps:
        assert path.index_of(step.approver_organization_id) > targets[step.step_order]


def test_construction_with_unresolvable_final_level_warns(make_directory):
    directory = make_directory(
        assign("choir-head", "Department Head", CHOIR),
        assign("music-parish", "Parish Head", MUSIC),
        assign("facilities-chair", "Facilities Committee Chair", ROOT),
    )

    preview = generate_approval_flow(directory, make_request(2000000, SpendingCategory.construction))

    assert preview.rule_key == "construction"
    assert [s.approver_id for s in preview.steps] == ["choir-head", "music-parish", "facilities-chair"]
    assert preview.total_steps == 3
    assert preview.estimated_days == 6
    assert len(preview.warnings) == 1
    assert "No approver found for 1 required step(s)" in preview.warnings[0]
    assert "levels 4" in preview.warnings[0]


def test_other_category_uses_generic_rule(make_directory):
    directory = make_directory(assign("choir-deputy", "Deputy Head", CHOIR))

    preview = generate_approval_flow(directory, make_request(10000, SpendingCategory.other))

    assert preview.rule_key == "other"
    assert [s.approver_id for s in preview.steps] == ["choir-deputy"]


def test_same_person_in_two_levels_collapses_to_later_step(make_directory):
    directory = make_directory(
        assign("dual", "Department Head", CHOIR, person_name="Dual Role"),
        assign("dual", "Parish Head", ROOT, person_name="Dual Role"),
    )

    preview = generate_approval_flow(directory, make_request(300000, SpendingCategory.ministry))

    assert preview.total_steps == 1
    step = preview.steps[0]
    assert step.step_order == 2
    assert step.approver_role == "Parish Head"
    assert step.organization_name == "Grace Church"
    assert any("same approver" in w for w in preview.warnings)


def test_unknown_organization_fails(make_directory):
    directory = make_directory()

    with pytest.raises(OrganizationNotFoundError):
        generate_approval_flow(
            directory, make_request(80000, SpendingCategory.supplies, organization_id="org-missing")
        )


# ─── Errors and policy ────────────────────────────────────────────────────────

def test_no_matching_rule_fails(make_directory):
    directory = make_directory(assign("choir-deputy", "Deputy Head", CHOIR))

    with pytest.raises(NoApplicableRuleError):
        generate_approval_flow(directory, make_request(60000, SpendingCategory.other))


def test_directory_failure_propagates(make_directory):
    directory = MagicMock(wraps=make_directory())
    directory.find_approver.side_effect = DirectoryLookupError("timeout")

    with pytest.raises(DirectoryLookupError):
        generate_approval_flow(directory, make_request(80000, SpendingCategory.supplies))


def test_blocking_policy_raises_on_missing_required_approver(make_directory):
    directory = make_directory(
        assign("choir-head", "Department Head", CHOIR),
        assign("music-parish", "Parish Head", MUSIC),
        assign("facilities-chair", "Facilities Committee Chair", ROOT),
    )

    with pytest.raises(MissingApproverError) as exc_info:
        generate_approval_flow(
            directory,
            make_request(2000000, SpendingCategory.construction),
            block_on_missing=True,
        )
    assert exc_info.value.level_orders == [4]


# ─── Escalation paths ─────────────────────────────────────────────────────────

def test_alternate_role_fills_missing_department_head(make_directory):
    directory = make_directory(
        assign("choir-deputy", "Deputy Head", CHOIR),
        assign("root-parish", "Parish Head", ROOT),
    )

    preview = generate_approval_flow(directory, make_request(300000, SpendingCategory.ministry))

    first = preview.steps[0]
    assert first.approver_id == "choir-deputy"
    assert first.approver_role == "Deputy Head"
    assert first.escalated is True


def test_alternate_role_found_at_ancestor(make_directory):
    directory = make_directory(
        assign("music-deputy", "Deputy Head", MUSIC),
        assign("music-group", "Group Leader", MUSIC),
    )

    preview = generate_approval_flow(directory, make_request(300000, SpendingCategory.ministry))

    first = preview.steps[0]
    assert (first.step_order, first.approver_id) == (1, "music-deputy")
    assert first.approver_organization_id == MUSIC.id
    assert first.escalated is True
    assert [s.approver_id for s in preview.steps] == ["music-deputy", "music-group"]


def test_ancestor_search_does_not_requery_target(make_directory):
    directory = MagicMock(wraps=make_directory(assign("music-head", "Department Head", MUSIC)))
    rule = _make_rule(_make_level(1, ["Department Head"], OrganizationScope.same))

    preview = generate_approval_flow(
        directory, make_request(1000, SpendingCategory.event), matrix=[rule]
    )

    assert [s.approver_id for s in preview.steps] == ["music-head"]
    assert [c.args for c in directory.find_approver.call_args_list] == [
        (CHOIR.id, ["Department Head"]),
        (MUSIC.id, ["Department Head"]),
    ]


def test_final_escalation_accepts_head_pastor(make_directory):
    directory = make_directory(
        assign("head-pastor", "Head Pastor", ROOT),
        assign("music-group", "Group Leader", MUSIC),
    )

    preview = generate_approval_flow(directory, make_request(300000, SpendingCategory.ministry))

    assert [(s.step_order, s.approver_id) for s in preview.steps] == [(1, "head-pastor"), (2, "music-group")]
    assert preview.steps[0].approver_role == "Head Pastor"
    assert preview.warnings == []


def test_final_escalation_reaches_senior_pastor(make_directory):
    directory = make_directory(
        assign("pastor", "Senior Pastor", ROOT),
        assign("music-group", "Group Leader", MUSIC),
    )

    preview = generate_approval_flow(directory, make_request(300000, SpendingCategory.ministry))

    assert [(s.step_order, s.approver_id) for s in preview.steps] == [(1, "pastor"), (2, "music-group")]
    assert preview.steps[0].organization_name == "Grace Church"


def test_optional_level_is_omitted_without_escalation(make_directory):
    directory = MagicMock(wraps=make_directory(assign("pastor", "Senior Pastor", ROOT)))
    rule = _make_rule(
        _make_level(1, ["Department Head"], OrganizationScope.same, is_required=False),
    )

    preview = generate_approval_flow(
        directory, make_request(1000, SpendingCategory.event), matrix=[rule]
    )

    assert preview.steps == []
    assert preview.warnings == []
    assert directory.find_approver.call_count == 1


# ─── Target resolution ────────────────────────────────────────────────────────

def test_root_requester_resolves_parent_and_root_to_itself(make_directory):
    directory = make_directory(
        assign("root-head", "Department Head", ROOT),
        assign("root-parish", "Parish Head", ROOT),
    )

    preview = generate_approval_flow(
        directory, make_request(300000, SpendingCategory.ministry, organization_id=ROOT.id)
    )

    assert [s.approver_id for s in preview.steps] == ["root-head", "root-parish"]
    assert all(s.approver_organization_id == ROOT.id for s in preview.steps)
    assert all(s.escalated is False for s in preview.steps)


def test_hierarchy_diagnostics_become_warnings(make_directory):
    from church_approvals.services.directory import OrganizationNode

    looped = OrganizationNode(id="org-loop", name="Loop", parent_id="org-loop")
    directory = make_directory(
        assign("loop-lead", "Team Lead", looped),
        organizations=[looped],
    )

    preview = generate_approval_flow(
        directory, make_request(5000, SpendingCategory.supplies, organization_id="org-loop")
    )

    assert [s.approver_id for s in preview.steps] == ["loop-lead"]
    assert any("cycle" in w for w in preview.warnings)


# ─── Properties ───────────────────────────────────────────────────────────────

def test_generation_is_deterministic(make_directory):
    directory = make_directory(
        assign("choir-head", "Department Head", CHOIR),
        assign("music-parish", "Parish Head", MUSIC),
        assign("music-group", "Group Leader", MUSIC),
        assign("facilities-chair", "Facilities Committee Chair", ROOT),
        assign("pastor", "Senior Pastor", ROOT),
    )
    request = make_request(2000000, SpendingCategory.construction)

    first = generate_approval_flow(directory, request)
    second = generate_approval_flow(directory, request)

    assert first.steps == second.steps
    assert first.warnings == second.warnings


def test_steps_are_sorted_and_unique(make_directory):
    directory = make_directory(
        assign("pastor", "Senior Pastor", ROOT),
        assign("pastor", "Facilities Committee Chair", ROOT),
        assign("choir-head", "Department Head", CHOIR),
        assign("music-parish", "Parish Head", MUSIC),
    )

    preview = generate_approval_flow(directory, make_request(2000000, SpendingCategory.construction))

    orders = [s.step_order for s in preview.steps]
    approvers = [s.approver_id for s in preview.steps]
    assert orders == sorted(orders)
    assert len(set(orders)) == len(orders)
    assert len(set(approvers)) == len(approvers)
    assert orders == [1, 2, 4]


def test_long_flow_warning(make_directory):
    directory = make_directory(
        assign("a", "Committee Chair", ROOT),
        assign("b", "President", ROOT),
        assign("c", "Secretary-General", ROOT),
    )
    rule = _make_rule(
        _make_level(1, ["Committee Chair"], OrganizationScope.root, timeout_hours=72),
        _make_level(2, ["President"], OrganizationScope.root, timeout_hours=72),
        _make_level(3, ["Secretary-General"], OrganizationScope.root, timeout_hours=72),
    )

    preview = generate_approval_flow(
        directory, make_request(1000, SpendingCategory.event), matrix=[rule]
    )

    assert preview.estimated_days == 9
    assert any("9 days" in w for w in preview.warnings)


def test_step_carries_level_flags_and_default_timeout(make_directory):
    directory = make_directory(assign("choir-lead", "Team Lead", CHOIR))
    rule = _make_rule(_make_level(1, ["Team Lead"], OrganizationScope.same, is_parallel=True))

    preview = generate_approval_flow(
        directory, make_request(1000, SpendingCategory.event), matrix=[rule]
    )

    step = preview.steps[0]
    assert step.is_parallel is True
    assert step.is_required is True
    assert step.timeout_hours == 24


# ─── Helpers under test ───────────────────────────────────────────────────────

def test_remove_duplicate_approvers_keeps_highest_step():
    steps = [_make_step(1, "x"), _make_step(2, "y"), _make_step(3, "x")]

    unique = remove_duplicate_approvers(steps)

    assert [(s.step_order, s.approver_id) for s in unique] == [(2, "y"), (3, "x")]


def test_estimated_days_round_up():
    assert calculate_estimated_days([]) == 0
    assert calculate_estimated_days([_make_step(1, "x")]) == 1

    long_step = _make_step(2, "y").model_copy(update={"timeout_hours": 30})
    assert calculate_estimated_days([long_step]) == 2
