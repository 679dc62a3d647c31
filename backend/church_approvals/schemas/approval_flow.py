"""Pydantic schemas for spending requests and generated approval flows."""
import enum
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from church_approvals.schemas.approval_matrix import SpendingCategory


class RequestPriority(str, enum.Enum):
    low = "low"
    normal = "normal"
    high = "high"
    urgent = "urgent"


class StepStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


# ─── Spending request ───

def ensure_whole_amount(value: Decimal) -> Decimal:
    """Amounts are counted in whole currency units; matrix bounds rely on it."""
    if value != value.to_integral_value():
        raise ValueError("amount must be a whole number")
    return value


class SpendingRequest(BaseModel):
    """Input to flow generation. Amounts must be positive whole numbers."""

    model_config = ConfigDict(frozen=True)

    requester_id: str
    organization_id: str
    amount: Decimal = Field(gt=0)
    category: SpendingCategory
    description: str = ""
    priority: RequestPriority = RequestPriority.normal

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v):
        return ensure_whole_amount(v)


class SpendingRequestIn(BaseModel):
    """HTTP body for a flow preview; priority falls back to the category default."""

    requester_id: str
    organization_id: str
    amount: Decimal = Field(gt=0)
    category: SpendingCategory
    description: str = ""
    priority: RequestPriority | None = None

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v):
        return ensure_whole_amount(v)


# ─── Generated flow ───

class ApprovalStep(BaseModel):
    step_order: int
    approver_id: str
    approver_name: str
    approver_role: str
    approver_organization_id: str
    organization_name: str
    status: StepStatus = StepStatus.pending
    is_required: bool = True
    is_parallel: bool = False
    timeout_hours: int | None = None
    escalated: bool = False


class ApprovalFlowPreview(BaseModel):
    rule_key: str
    steps: list[ApprovalStep]
    total_steps: int
    estimated_days: int
    warnings: list[str] = Field(default_factory=list)
