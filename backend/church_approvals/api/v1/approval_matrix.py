"""Approval matrix read endpoints."""
from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from church_approvals.core.deps import get_matrix
from church_approvals.rules.approval_matrix import require_approval_rule
from church_approvals.schemas.approval_flow import ensure_whole_amount
from church_approvals.schemas.approval_matrix import ApprovalMatrixRule, SpendingCategory

router = APIRouter()


@router.get(
    "",
    response_model=list[ApprovalMatrixRule],
    summary="List approval matrix rules in declaration order",
)
def list_rules(matrix: Annotated[list[ApprovalMatrixRule], Depends(get_matrix)]):
    return matrix


@router.get(
    "/match",
    response_model=ApprovalMatrixRule,
    summary="Return the rule that would route a request",
)
def match_rule(
    matrix: Annotated[list[ApprovalMatrixRule], Depends(get_matrix)],
    amount: Annotated[Decimal, Query(gt=0)],
    category: SpendingCategory,
    organization_id: str | None = None,
):
    try:
        ensure_whole_amount(amount)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    return require_approval_rule(amount, category, organization_id, matrix)
