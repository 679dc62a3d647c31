"""Organization directory — the read-only oracle the approval engine queries.

Two lookups are needed: an organization's node (to walk parent links) and
the active person holding one of a set of roles at an organization. Any
failure to answer is raised as DirectoryLookupError so a broken directory
never looks like "no approver needed".
"""
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from church_approvals.core.exceptions import DirectoryLookupError
from church_approvals.rules.approval_matrix import role_seniority

logger = logging.getLogger(__name__)


# ─── Directory records ───

@dataclass(frozen=True)
class OrganizationNode:
    id: str
    name: str
    parent_id: str | None = None


@dataclass(frozen=True)
class ApproverCandidate:
    person_id: str
    person_name: str
    role_name: str
    organization_id: str
    organization_name: str


@dataclass(frozen=True)
class RoleAssignment:
    """An in-memory stand-in for an active leadership membership."""

    person_id: str
    person_name: str
    organization_id: str
    role_name: str
    role_level: int | None = None
    is_active: bool = True


class OrganizationDirectory(Protocol):
    def get_organization(self, organization_id: str) -> OrganizationNode | None:
        ...

    def find_approver(
        self, organization_id: str, role_names: list[str]
    ) -> ApproverCandidate | None:
        ...


def _candidate_sort_key(level: int, role_name: str, role_names: list[str], name: str, person_id: str):
    """Senior role first, then requested-role order, then a stable name/id order."""
    return (-level, role_names.index(role_name), name, person_id)


# ─── In-memory directory ───

class InMemoryDirectory:
    """Directory over fixed node and assignment lists."""

    def __init__(
        self,
        organizations: Iterable[OrganizationNode],
        assignments: Iterable[RoleAssignment] = (),
    ):
        self._organizations = {org.id: org for org in organizations}
        self._assignments = list(assignments)

    def get_organization(self, organization_id: str) -> OrganizationNode | None:
        return self._organizations.get(organization_id)

    def find_approver(
        self, organization_id: str, role_names: list[str]
    ) -> ApproverCandidate | None:
        org = self._organizations.get(organization_id)
        if org is None:
            return None

        matches = [
            a for a in self._assignments
            if a.is_active and a.organization_id == organization_id and a.role_name in role_names
        ]
        if not matches:
            return None

        def level_of(a: RoleAssignment) -> int:
            return a.role_level if a.role_level is not None else role_seniority(a.role_name)

        best = min(
            matches,
            key=lambda a: _candidate_sort_key(level_of(a), a.role_name, role_names, a.person_name, a.person_id),
        )
        return ApproverCandidate(
            person_id=best.person_id,
            person_name=best.person_name,
            role_name=best.role_name,
            organization_id=org.id,
            organization_name=org.name,
        )


# ─── SQL-backed directory ───

class SqlOrganizationDirectory:
    """Directory over the organization tables, using a sync Session."""

    def __init__(self, db: Session):
        self.db = db

    def get_organization(self, organization_id: str) -> OrganizationNode | None:
        from church_approvals.models.organization import Organization

        try:
            org = self.db.execute(
                select(Organization).where(Organization.id == organization_id)
            ).scalars().first()
        except SQLAlchemyError as exc:
            logger.error("Organization lookup failed for %s: %s", organization_id, exc)
            raise DirectoryLookupError(
                f"Could not load organization {organization_id}."
            ) from exc

        if org is None or not org.is_active:
            return None
        return OrganizationNode(id=org.id, name=org.name, parent_id=org.parent_id)

    def find_approver(
        self, organization_id: str, role_names: list[str]
    ) -> ApproverCandidate | None:
        """Return the active member holding the most senior requested role.

        Only active memberships of active leadership roles held by ACTIVE
        members count.
        """
        from church_approvals.models.organization import (
            ACTIVE_MEMBER_STATUS,
            Member,
            Organization,
            OrganizationMembership,
            Role,
        )

        stmt = (
            select(OrganizationMembership, Member, Role, Organization)
            .join(Member, Member.id == OrganizationMembership.member_id)
            .join(Role, Role.id == OrganizationMembership.role_id)
            .join(Organization, Organization.id == OrganizationMembership.organization_id)
            .where(
                OrganizationMembership.organization_id == organization_id,
                OrganizationMembership.is_active.is_(True),
                Role.name.in_(role_names),
                Role.is_active.is_(True),
                Role.is_leadership.is_(True),
                Member.status == ACTIVE_MEMBER_STATUS,
            )
            .order_by(Role.level.desc())
        )
        try:
            rows = self.db.execute(stmt).all()
        except SQLAlchemyError as exc:
            logger.error(
                "Approver lookup failed for organization=%s roles=%s: %s",
                organization_id, role_names, exc,
            )
            raise DirectoryLookupError(
                f"Could not search approvers in organization {organization_id}."
            ) from exc

        if not rows:
            return None

        _, member, role, org = min(
            rows,
            key=lambda row: _candidate_sort_key(row[2].level, row[2].name, role_names, row[1].name, row[1].id),
        )
        return ApproverCandidate(
            person_id=member.id,
            person_name=member.name,
            role_name=role.name,
            organization_id=org.id,
            organization_name=org.name,
        )
