"""Approval flow preview endpoint."""
from typing import Annotated

from fastapi import APIRouter, Depends

from church_approvals.core.deps import get_directory, get_matrix
from church_approvals.rules.approval_matrix import default_priority_for
from church_approvals.schemas.approval_flow import (
    ApprovalFlowPreview,
    SpendingRequest,
    SpendingRequestIn,
)
from church_approvals.schemas.approval_matrix import ApprovalMatrixRule
from church_approvals.services.approval_flow import generate_approval_flow
from church_approvals.services.directory import OrganizationDirectory

router = APIRouter()


@router.post(
    "/preview",
    response_model=ApprovalFlowPreview,
    summary="Generate the approval flow for a spending request",
)
def preview_approval_flow(
    body: SpendingRequestIn,
    directory: Annotated[OrganizationDirectory, Depends(get_directory)],
    matrix: Annotated[list[ApprovalMatrixRule], Depends(get_matrix)],
):
    request = SpendingRequest(
        requester_id=body.requester_id,
        organization_id=body.organization_id,
        amount=body.amount,
        category=body.category,
        description=body.description,
        priority=body.priority or default_priority_for(body.category),
    )
    return generate_approval_flow(directory, request, matrix=matrix)
