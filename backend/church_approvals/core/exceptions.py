"""Error types raised while routing a spending request.

Each error carries a stable ``code`` so the HTTP layer and other callers can
tell an unroutable request (add a rule) from bad organization data (fix the
directory) or an unreachable directory (check connectivity).
"""


class ApprovalFlowError(Exception):
    code = "approval_flow_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NoApplicableRuleError(ApprovalFlowError):
    """No approval matrix rule covers the category/amount/organization."""

    code = "no_applicable_rule"


class OrganizationNotFoundError(ApprovalFlowError):
    code = "organization_not_found"

    def __init__(self, organization_id: str):
        super().__init__(f"Organization {organization_id} not found.")
        self.organization_id = organization_id


class DirectoryLookupError(ApprovalFlowError):
    """The organization directory could not answer a query."""

    code = "directory_lookup_failed"


class MissingApproverError(ApprovalFlowError):
    """Raised instead of a warning when the caller blocks on unfilled levels."""

    code = "missing_required_approver"

    def __init__(self, message: str, level_orders: list[int]):
        super().__init__(message)
        self.level_orders = level_orders


class ApprovalMatrixConfigError(ApprovalFlowError):
    code = "invalid_approval_matrix"
