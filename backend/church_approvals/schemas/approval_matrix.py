"""Pydantic schemas for approval matrix rules and their levels."""
import enum
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class SpendingCategory(str, enum.Enum):
    ministry = "ministry"
    supplies = "supplies"
    equipment = "equipment"
    event = "event"
    construction = "construction"
    facilities = "facilities"
    salary = "salary"
    bonus = "bonus"
    benefits = "benefits"
    utilities = "utilities"
    maintenance = "maintenance"
    other = "other"


class OrganizationScope(str, enum.Enum):
    """Which organization on the requester's path a level searches."""

    same = "same"
    parent = "parent"
    root = "root"


# ─── Matrix rule schemas ───

class ApprovalLevel(BaseModel):
    model_config = ConfigDict(frozen=True)

    level_order: int = Field(ge=1)
    required_roles: list[str] = Field(min_length=1)
    organization_scope: OrganizationScope
    is_required: bool = True
    is_parallel: bool = False
    timeout_hours: int | None = Field(default=None, gt=0)


class ApprovalMatrixRule(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    name: str = ""
    categories: list[SpendingCategory] = Field(min_length=1)
    min_amount: Decimal | None = None
    max_amount: Decimal | None = None
    organization_id: str | None = None
    priority: int = 0
    levels: list[ApprovalLevel] = Field(min_length=1)

    @model_validator(mode="after")
    def _check_bounds_and_levels(self) -> "ApprovalMatrixRule":
        if (
            self.min_amount is not None
            and self.max_amount is not None
            and self.min_amount > self.max_amount
        ):
            raise ValueError(
                f"Rule '{self.key}': min_amount {self.min_amount} exceeds max_amount {self.max_amount}."
            )
        orders = [level.level_order for level in self.levels]
        if len(orders) != len(set(orders)):
            raise ValueError(f"Rule '{self.key}': level_order values must be unique.")
        return self

    def matches(
        self,
        amount: Decimal,
        category: SpendingCategory,
        organization_id: str | None = None,
    ) -> bool:
        if category not in self.categories:
            return False
        if self.min_amount is not None and amount < self.min_amount:
            return False
        if self.max_amount is not None and amount > self.max_amount:
            return False
        if self.organization_id is not None and self.organization_id != organization_id:
            return False
        return True

    def ordered_levels(self) -> list[ApprovalLevel]:
        return sorted(self.levels, key=lambda level: level.level_order)
