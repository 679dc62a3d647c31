from fastapi import APIRouter

from church_approvals.api.v1 import approval_flows, approval_matrix

api_router = APIRouter()

api_router.include_router(approval_flows.router, prefix="/approval-flows", tags=["approval-flows"])
api_router.include_router(approval_matrix.router, prefix="/approval-matrix", tags=["approval-matrix"])
