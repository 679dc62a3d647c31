from church_approvals.models.organization import Member, Organization, OrganizationMembership, Role

__all__ = [
    "Organization", "Role", "Member", "OrganizationMembership",
]
