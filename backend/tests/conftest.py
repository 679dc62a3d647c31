"""Shared fixtures: a three-level church hierarchy and a directory factory.

    Grace Church (root) -> Music Department -> Choir Team
"""
from decimal import Decimal

import pytest

from church_approvals.schemas.approval_flow import SpendingRequest
from church_approvals.schemas.approval_matrix import SpendingCategory
from church_approvals.services.directory import (
    InMemoryDirectory,
    OrganizationNode,
    RoleAssignment,
)

ROOT = OrganizationNode(id="org-root", name="Grace Church")
MUSIC = OrganizationNode(id="org-music", name="Music Department", parent_id=ROOT.id)
CHOIR = OrganizationNode(id="org-choir", name="Choir Team", parent_id=MUSIC.id)

CHURCH_ORGANIZATIONS = [ROOT, MUSIC, CHOIR]


def assign(person_id: str, role_name: str, organization: OrganizationNode, **kwargs) -> RoleAssignment:
    return RoleAssignment(
        person_id=person_id,
        person_name=kwargs.pop("person_name", person_id.replace("-", " ").title()),
        organization_id=organization.id,
        role_name=role_name,
        **kwargs,
    )


def make_request(
    amount: str | int,
    category: SpendingCategory,
    organization_id: str = CHOIR.id,
) -> SpendingRequest:
    return SpendingRequest(
        requester_id="member-requester",
        organization_id=organization_id,
        amount=Decimal(str(amount)),
        category=category,
        description="Test request",
    )


@pytest.fixture
def make_directory():
    """Factory: build an InMemoryDirectory over the church hierarchy."""
    def _make(*assignments: RoleAssignment, organizations=None) -> InMemoryDirectory:
        return InMemoryDirectory(organizations or CHURCH_ORGANIZATIONS, assignments)
    return _make
