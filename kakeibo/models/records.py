"""
Core Data Models for Kakeibo

These models define the schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and logging

DESIGN DECISION: Amounts are whole yen (int). There is no minor unit,
so there is no rounding anywhere in the aggregation.

DESIGN DECISION: Stored records keep their category as a plain label
string. A label that has since left the taxonomy is carried forward
untouched rather than dropped or rewritten on load.
"""

import calendar
from datetime import date, timedelta
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


# =============================================================================
# TAXONOMY - Finite set of valid values
# =============================================================================

class Category(str, Enum):
    """
    Supported expense categories.

    The first six are fixed costs, the rest are variable.
    """
    HOUSING = "Housing"
    INSURANCE = "Insurance"
    COMMUNICATION = "Communication"
    CAR = "Car"
    UTILITIES = "Utilities"
    EDUCATION = "Education"
    FOOD = "Food"
    DAILY_NECESSITIES = "Daily Necessities"
    EATING_OUT = "Eating Out"
    SOCIALIZING = "Socializing"
    TRANSPORT = "Transport"
    MEDICAL = "Medical"
    BEAUTY = "Beauty"
    SPECIAL = "Special"
    OTHER = "Other"


class ExpenseType(str, Enum):
    """Whether a category is a recurring commitment or discretionary."""
    FIXED = "Fixed"
    VARIABLE = "Variable"


CATEGORY_EXPENSE_TYPE: Mapping[Category, ExpenseType] = MappingProxyType({
    Category.HOUSING: ExpenseType.FIXED,
    Category.INSURANCE: ExpenseType.FIXED,
    Category.COMMUNICATION: ExpenseType.FIXED,
    Category.CAR: ExpenseType.FIXED,
    Category.UTILITIES: ExpenseType.FIXED,
    Category.EDUCATION: ExpenseType.FIXED,
    Category.FOOD: ExpenseType.VARIABLE,
    Category.DAILY_NECESSITIES: ExpenseType.VARIABLE,
    Category.EATING_OUT: ExpenseType.VARIABLE,
    Category.SOCIALIZING: ExpenseType.VARIABLE,
    Category.TRANSPORT: ExpenseType.VARIABLE,
    Category.MEDICAL: ExpenseType.VARIABLE,
    Category.BEAUTY: ExpenseType.VARIABLE,
    Category.SPECIAL: ExpenseType.VARIABLE,
    Category.OTHER: ExpenseType.VARIABLE,
})

_missing = set(Category) - set(CATEGORY_EXPENSE_TYPE)
if _missing:
    raise RuntimeError(
        f"Categories without an expense type: {sorted(c.value for c in _missing)}"
    )
del _missing


def parse_category(label: str) -> Optional[Category]:
    """Return the Category for a stored label, or None if it is not in the taxonomy."""
    try:
        return Category(label)
    except ValueError:
        return None


def expense_type_for(label: str) -> Optional[ExpenseType]:
    """Look up the expense type of a stored category label."""
    category = parse_category(label)
    if category is None:
        return None
    return CATEGORY_EXPENSE_TYPE[category]


def fixed_categories() -> list[Category]:
    """Categories tagged as fixed costs, in taxonomy order."""
    return [c for c in Category if CATEGORY_EXPENSE_TYPE[c] is ExpenseType.FIXED]


def new_record_id() -> str:
    """Generate a new record identifier."""
    return str(uuid4())


# =============================================================================
# LEDGER RECORDS
# =============================================================================

class ExpenseDraft(BaseModel):
    """
    Everything about an expense except its identity.

    Used for both adding and editing. Unlike a stored Expense,
    the category here must be a current taxonomy member.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    date: date
    amount: int = Field(..., gt=0, description="Amount in yen")
    category: Category
    description: str = Field(default="", max_length=500)


class IncomeDraft(BaseModel):
    """Everything about an income except its identity."""
    model_config = ConfigDict(str_strip_whitespace=True)

    date: date
    amount: int = Field(..., gt=0, description="Amount in yen")
    description: str = Field(default="", max_length=500)


class Expense(BaseModel):
    """
    A single outgoing payment.

    Owned by the RecordStore. Everything except `id` can be replaced by an edit.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(default_factory=new_record_id, min_length=1)
    date: date
    amount: int = Field(..., gt=0, description="Amount in yen")
    category: str = Field(..., min_length=1, description="Category label")
    description: str = Field(default="", max_length=500)
    fixed_cost_id: Optional[str] = Field(
        default=None,
        description="Template this expense was posted from, if any"
    )

    @field_validator('category', mode='before')
    @classmethod
    def category_as_label(cls, v):
        if isinstance(v, Category):
            return v.value
        return v

    @property
    def known_category(self) -> Optional[Category]:
        return parse_category(self.category)

    @classmethod
    def from_draft(
        cls,
        draft: ExpenseDraft,
        record_id: Optional[str] = None,
        fixed_cost_id: Optional[str] = None,
    ) -> "Expense":
        return cls(
            id=record_id or new_record_id(),
            date=draft.date,
            amount=draft.amount,
            category=draft.category.value,
            description=draft.description,
            fixed_cost_id=fixed_cost_id,
        )

    def as_prefill(self) -> dict:
        """Initial values for the edit form. A stale label leaves the category unset."""
        return {
            "amount": self.amount,
            "date": self.date,
            "description": self.description,
            "category": self.known_category,
        }


class Income(BaseModel):
    """A single incoming payment."""
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(default_factory=new_record_id, min_length=1)
    date: date
    amount: int = Field(..., gt=0, description="Amount in yen")
    description: str = Field(default="", max_length=500)

    @classmethod
    def from_draft(cls, draft: IncomeDraft, record_id: Optional[str] = None) -> "Income":
        return cls(
            id=record_id or new_record_id(),
            date=draft.date,
            amount=draft.amount,
            description=draft.description,
        )

    def as_prefill(self) -> dict:
        return {"amount": self.amount, "date": self.date, "description": self.description}


class FixedCostTemplate(BaseModel):
    """
    A recurring monthly cost (rent, insurance, phone plan...).

    Posting a template for a month creates one Expense dated the
    first day of that month.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(default_factory=new_record_id, min_length=1)
    amount: int = Field(..., gt=0, description="Monthly amount in yen")
    category: Category
    description: str = Field(default="", max_length=500)

    @field_validator('category')
    @classmethod
    def must_be_fixed(cls, v: Category) -> Category:
        if CATEGORY_EXPENSE_TYPE[v] is not ExpenseType.FIXED:
            raise ValueError(f"{v.value} is not a fixed-cost category")
        return v

    @property
    def label(self) -> str:
        return self.description or self.category.value

    def to_draft(self, month: "MonthSelector") -> ExpenseDraft:
        return ExpenseDraft(
            date=month.first_day,
            amount=self.amount,
            category=self.category,
            description=self.description,
        )

    def as_prefill(self) -> dict:
        return {
            "amount": self.amount,
            "category": self.category,
            "description": self.description,
        }


class Budgets(BaseModel):
    """
    Monthly spending ceilings.

    0 means "no budget set", not "budget of zero".
    Replaced wholesale on every save.
    """

    overall: int = Field(default=0, ge=0, description="Overall monthly ceiling in yen")
    categories: dict[str, int] = Field(
        default_factory=dict,
        description="Per-category monthly ceilings in yen"
    )

    @field_validator('categories', mode='before')
    @classmethod
    def labels_as_keys(cls, v):
        if isinstance(v, dict):
            return {
                (k.value if isinstance(k, Category) else k): amount
                for k, amount in v.items()
            }
        return v

    @field_validator('categories')
    @classmethod
    def validate_categories(cls, v: dict[str, int]) -> dict[str, int]:
        for label, amount in v.items():
            if parse_category(label) is None:
                raise ValueError(f"Unknown budget category: {label}")
            if amount < 0:
                raise ValueError(f"Budget for {label} cannot be negative")
        return v

    def limit_for(self, category: str) -> int:
        """Ceiling for a category label (0 when unset)."""
        return self.categories.get(category, 0)

    @property
    def has_overall(self) -> bool:
        return self.overall > 0


# =============================================================================
# MONTH SELECTION
# =============================================================================

class MonthSelector(BaseModel):
    """
    The (year, month) currently being viewed.

    Moves one calendar month at a time and never past the current month.
    """
    model_config = ConfigDict(frozen=True)

    year: int = Field(..., ge=1, le=9999)
    month: int = Field(..., ge=1, le=12)

    @classmethod
    def of(cls, day: date) -> "MonthSelector":
        return cls(year=day.year, month=day.month)

    @classmethod
    def current(cls, today: Optional[date] = None) -> "MonthSelector":
        return cls.of(today or date.today())

    @property
    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def last_day(self) -> date:
        return date(self.year, self.month, calendar.monthrange(self.year, self.month)[1])

    @property
    def label(self) -> str:
        return f"{self.year}-{self.month:02d}"

    @property
    def display_label(self) -> str:
        return f"{self.year}年{self.month}月"

    def contains(self, day: date) -> bool:
        return self.first_day <= day <= self.last_day

    def previous(self) -> "MonthSelector":
        return MonthSelector.of(self.first_day - timedelta(days=1))

    def can_advance(self, today: Optional[date] = None) -> bool:
        return self < MonthSelector.current(today)

    def next(self, today: Optional[date] = None) -> "MonthSelector":
        """The following month, or self when already at the current month."""
        if not self.can_advance(today):
            return self
        return MonthSelector.of(self.last_day + timedelta(days=1))

    def __lt__(self, other: "MonthSelector") -> bool:
        return (self.year, self.month) < (other.year, other.month)


# =============================================================================
# AI COLLABORATOR RESULTS
# =============================================================================

class ReceiptImage(BaseModel):
    """Represents a receipt photo before it is sent for analysis."""

    upload_id: str = Field(default_factory=new_record_id)
    original_filename: str
    file_size_bytes: int = Field(ge=0)
    mime_type: str

    @field_validator('mime_type')
    @classmethod
    def validate_mime_type(cls, v: str) -> str:
        """Only allow image types."""
        allowed = {'image/jpeg', 'image/png', 'image/webp'}
        if v.lower() not in allowed:
            raise ValueError(f"Unsupported image type: {v}. Allowed: {allowed}")
        return v.lower()


class PreparedReceiptImage(BaseModel):
    """A receipt photo re-encoded as JPEG and ready to send for analysis."""

    upload_id: str
    data: bytes = Field(..., repr=False)
    mime_type: str = "image/jpeg"
    width: int = Field(gt=0)
    height: int = Field(gt=0)
    resized: bool = False

    # Photo problems worth telling the user about; they do not block the scan
    quality_issues: list[str] = Field(default_factory=list)


class ReceiptExtraction(BaseModel):
    """
    Data read off a receipt.

    CRITICAL: This is PROPOSED data. It only pre-fills the expense form;
    the user saves it (or not).
    The category is always a taxonomy member; anything else becomes OTHER.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Optional[int] = Field(default=None, gt=0)
    purchased_on: Optional[date] = None
    description: Optional[str] = Field(default=None, max_length=500)
    category: Category = Category.OTHER

    @field_validator('category', mode='before')
    @classmethod
    def unknown_category_is_other(cls, v):
        if isinstance(v, Category):
            return v
        if isinstance(v, str):
            return parse_category(v.strip()) or Category.OTHER
        return Category.OTHER

    def as_prefill(self) -> dict:
        """Initial values for the expense form."""
        return {
            "amount": self.amount,
            "date": self.purchased_on,
            "description": self.description or "",
            "category": self.category,
        }


class SalesLocation(BaseModel):
    """
    Where to look for sales: a free-text address OR a coordinate pair.

    Exactly one of the two must be given.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    address: Optional[str] = Field(default=None, max_length=300)
    latitude: Optional[float] = Field(default=None, ge=-90.0, le=90.0)
    longitude: Optional[float] = Field(default=None, ge=-180.0, le=180.0)

    @model_validator(mode='after')
    def exactly_one_location(self) -> 'SalesLocation':
        has_address = bool(self.address)
        has_coords = self.latitude is not None and self.longitude is not None
        partial_coords = (self.latitude is None) != (self.longitude is None)

        if partial_coords:
            raise ValueError("Latitude and longitude must be given together")
        if has_address and has_coords:
            raise ValueError("Give either an address or coordinates, not both")
        if not has_address and not has_coords:
            raise ValueError("An address or a latitude/longitude pair is required")
        return self

    @property
    def uses_coordinates(self) -> bool:
        return self.latitude is not None


class SalesSource(BaseModel):
    """A web page the sales answer was grounded on."""

    uri: str = Field(..., min_length=1)
    title: Optional[str] = None


class SalesInfo(BaseModel):
    """Advice text about nearby sales plus its citations (possibly none)."""

    text: str
    sources: list[SalesSource] = Field(default_factory=list)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'suspicious_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """Result of validating one form submission."""

    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def warnings(self) -> list[str]:
        return [issue.message for issue in self.issues if issue.severity == "warning"]

    def messages_for(self, field: str) -> list[str]:
        """Messages to show next to one form field."""
        return [issue.message for issue in self.issues if issue.field == field]
