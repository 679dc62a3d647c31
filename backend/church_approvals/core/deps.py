from typing import Annotated

from fastapi import Depends
from sqlalchemy.orm import Session

from church_approvals.db.session import get_db
from church_approvals.rules.approval_matrix import get_approval_matrix
from church_approvals.schemas.approval_matrix import ApprovalMatrixRule
from church_approvals.services.directory import OrganizationDirectory, SqlOrganizationDirectory


def get_directory(db: Annotated[Session, Depends(get_db)]) -> OrganizationDirectory:
    """Organization directory bound to the request's session."""
    return SqlOrganizationDirectory(db)


def get_matrix() -> list[ApprovalMatrixRule]:
    return get_approval_matrix()
