"""
Mechanical Contracting Quotes - Models
Pydantic models for quote line items, exchange rates, revisions and totals.

All models are frozen: a value handed to the pricing engine is a snapshot,
edits produce new instances via model_copy().
"""

from decimal import Decimal
from typing import Optional, List, Dict, Any, Literal
from datetime import datetime
from pydantic import BaseModel, Field, validator
from enum import Enum


# ============================================================================
# ENUMS - Dropdown/Select Values
# ============================================================================

class Currency(str, Enum):
    """Supported line item currencies"""
    TRY = "TRY"  # Turkish Lira (settlement currency)
    USD = "USD"
    EUR = "EUR"


SETTLEMENT_CURRENCY = Currency.TRY


class QuoteStatus(str, Enum):
    """Quote (proposal) lifecycle status"""
    DRAFT = "Draft"
    SENT = "Sent"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class VatMode(str, Enum):
    """How the grand total is presented"""
    EXCLUSIVE = "exclusive"  # item sums are ex-VAT, VAT added on top
    INCLUSIVE = "inclusive"  # item sums are shown as the VAT-inclusive figure


DateRange = Literal["all", "last30days", "last90days"]
SortOrder = Literal["newest", "oldest"]


# ============================================================================
# CONFIGURATION
# ============================================================================

class ExchangeRateSet(BaseModel):
    """Quote-scoped exchange rates to TRY. TRY itself is implicitly 1."""
    USD: Optional[Decimal] = Field(default=None, description="1 USD in TRY")
    EUR: Optional[Decimal] = Field(default=None, description="1 EUR in TRY")

    class Config:
        frozen = True

    @property
    def is_complete(self) -> bool:
        return self.USD is not None and self.EUR is not None

    def as_dict(self) -> Dict[str, Optional[float]]:
        """Plain dict for storage (floats, like the rest of the store rows)"""
        return {
            "USD": float(self.USD) if self.USD is not None else None,
            "EUR": float(self.EUR) if self.EUR is not None else None,
        }


class PricingConfig(BaseModel):
    """System-wide pricing configuration (environment controlled)"""
    vat_rate: Decimal = Field(default=Decimal("0.20"), ge=0, le=1, description="Fixed VAT rate (KDV)")
    default_group_name: str = Field(default="Other", min_length=1, description="Sentinel group for ungrouped items")
    default_profit_margin: Decimal = Field(default=Decimal("0.20"), ge=0, lt=1, description="Margin for newly added items")
    rate_source_url: str = Field(
        default="https://www.tcmb.gov.tr/kurlar/today.xml",
        description="TCMB daily rates XML"
    )
    rate_timeout: float = Field(default=10.0, gt=0, description="Rate fetch timeout in seconds")
    fallback_rates: ExchangeRateSet = Field(
        default_factory=lambda: ExchangeRateSet(USD=Decimal("32.50"), EUR=Decimal("35.00")),
        description="Rates for a new quote when the rate source is unavailable"
    )

    class Config:
        frozen = True


# ============================================================================
# INPUT MODELS
# ============================================================================

class LineItem(BaseModel):
    """
    One priced row of a quote.

    Numeric bounds are checked by pricing_engine.validate_line_item(),
    which raises one pricing error per invariant.
    """
    id: Optional[str] = Field(default=None, description="Store id of the item document")
    product_id: Optional[str] = Field(default=None, description="Catalog product it was created from")
    name: str = ""
    brand: str = ""
    model: str = ""
    unit: str = ""
    quantity: Decimal = Field(default=Decimal("1"), description="Must be > 0")
    list_price: Decimal = Field(default=Decimal("0"), description="List price in item currency")
    currency: Currency = Field(default=Currency.TRY, description="Currency of list price")
    discount_rate: Decimal = Field(default=Decimal("0"), description="Supplier discount, fraction 0-1")
    profit_margin: Decimal = Field(default=Decimal("0"), description="Margin on sale, fraction 0-<1")
    group_name: Optional[str] = Field(default=None, description="Presentation group label")
    order_index: int = 0

    class Config:
        frozen = True


class Product(BaseModel):
    """Catalog product as needed to create a line item"""
    id: str
    name: str = ""
    brand: str = ""
    model: str = ""
    unit: str = ""
    list_price: Decimal = Decimal("0")
    currency: Currency = Currency.TRY
    discount_rate: Decimal = Decimal("0")
    installation_type_id: Optional[str] = None


class InstallationType(BaseModel):
    """Node of the installation-type taxonomy (root names become item groups)"""
    id: str
    name: str
    parent_id: Optional[str] = None


class Quote(BaseModel):
    """One stored revision of a quote (proposal)"""
    id: str
    root_id: Optional[str] = Field(default=None, description="Shared by all revisions; id of the first one")
    version: int = Field(default=1, ge=1)
    items: List[LineItem] = Field(default_factory=list)
    exchange_rates: ExchangeRateSet = Field(default_factory=ExchangeRateSet)
    status: QuoteStatus = QuoteStatus.DRAFT
    version_note: str = ""
    total_amount: Decimal = Field(default=Decimal("0"), description="Cached grand total, VAT-exclusive")
    created_at: Optional[datetime] = Field(default=None, description="None until the server timestamp resolves")

    quote_number: str = ""
    customer_id: Optional[str] = None
    customer_name: str = ""
    project_name: str = ""

    class Config:
        frozen = True


class JobAssignment(BaseModel):
    """Personnel assigned to carry out a quoted job"""
    id: Optional[str] = None
    quote_id: str
    personnel_id: str


class QuoteFilter(BaseModel):
    """Filters of the quote list"""
    status: Optional[QuoteStatus] = Field(default=None, description="None = all statuses")
    search_term: str = ""
    date_range: DateRange = "all"
    sort_order: SortOrder = "newest"

    @validator('search_term')
    def strip_search_term(cls, v):
        return v.strip()


# ============================================================================
# CALCULATION OUTPUT MODELS
# ============================================================================

class LinePricing(BaseModel):
    """Result of pricing one line item (unrounded)"""
    unit_cost: Decimal = Field(..., description="Net cost per unit, native currency")
    unit_sell: Decimal = Field(..., description="Sell price per unit ex-VAT, native currency")
    unit_profit: Decimal = Field(..., description="unit_sell - unit_cost, native currency")

    unit_cost_settlement: Decimal
    unit_sell_settlement: Decimal
    unit_profit_settlement: Decimal

    line_cost_settlement: Decimal
    line_sell_settlement: Decimal
    line_profit_settlement: Decimal

    line_sell_native: Decimal = Field(..., description="unit_sell * quantity, native currency")


class GroupTotals(BaseModel):
    """Subtotal of one presentation group, settlement currency"""
    group_name: str
    sell_settlement: Decimal = Decimal("0")
    cost_settlement: Decimal = Decimal("0")
    profit_settlement: Decimal = Decimal("0")
    profit_margin_ratio: Decimal = Decimal("0")
    per_currency_native_totals: Dict[Currency, Decimal] = Field(
        default_factory=lambda: {c: Decimal("0") for c in Currency}
    )
    item_count: int = 0


class QuoteGroup(BaseModel):
    """Group as rendered by the editor and the print view (never stored)"""
    group_name: str
    items: List[LineItem]
    subtotal: GroupTotals


class VatBreakdown(BaseModel):
    """Presented VAT figures"""
    sell_ex_vat: Decimal
    vat_amount: Decimal
    sell_inc_vat: Decimal


class QuoteTotals(BaseModel):
    """Grand totals. items_* fields come from item sums, the rest are presentation."""
    # Computed from items
    items_sell_ex_vat: Decimal
    cost: Decimal
    profit: Decimal
    profit_margin_ratio: Decimal

    # Presented (depends on vat_mode)
    sell_ex_vat: Decimal
    vat_amount: Decimal
    sell_inc_vat: Decimal

    vat_rate: Decimal
    vat_mode: VatMode


# ============================================================================
# REVISION MODELS
# ============================================================================

class RevisionCluster(BaseModel):
    """All stored revisions of one logical quote"""
    root_id: str
    versions: List[Quote] = Field(..., min_length=1, description="Sorted by version, newest first")
    is_assigned: bool = False
    assigned_personnel_name: Optional[str] = None

    @property
    def latest(self) -> Quote:
        return self.versions[0]

    @property
    def max_version(self) -> int:
        return max(q.version for q in self.versions)


class WriteOp(BaseModel):
    """
    One document write for the storage layer.

    A delete without doc_id removes every document of the collection owned
    by parent_id (all line items of a quote).
    """
    op: Literal["set", "update", "delete"]
    collection: str
    doc_id: Optional[str] = None
    parent_id: Optional[str] = Field(default=None, description="Owning quote id for line items")
    data: Optional[Dict[str, Any]] = None


class WriteBatch(BaseModel):
    """Writes that must be committed atomically"""
    ops: List[WriteOp] = Field(default_factory=list)

    def __len__(self) -> int:
        return len(self.ops)

    def doc_ids(self, collection: str, op: Optional[str] = None) -> List[str]:
        return [
            w.doc_id for w in self.ops
            if w.doc_id is not None
            and w.collection == collection and (op is None or w.op == op)
        ]

    def cleared_parents(self, collection: str) -> List[str]:
        """Parents whose whole child collection is deleted"""
        return [
            w.parent_id for w in self.ops
            if w.op == "delete" and w.doc_id is None and w.collection == collection
        ]

    def to_payload(self) -> List[Dict[str, Any]]:
        """JSON-safe list for the apply_quote_batch database function"""
        return [w.model_dump(mode="json") for w in self.ops]


class ListStats(BaseModel):
    """Count/total/average of the visible quote rows"""
    count: int = 0
    total: Decimal = Decimal("0")
    average: Decimal = Decimal("0")


class QuoteListing(BaseModel):
    """Quote list as browsed: grouped by revision cluster, or flat per version"""
    mode: Literal["grouped", "flat"]
    clusters: List[RevisionCluster] = Field(default_factory=list)
    rows: List[Quote] = Field(default_factory=list)
    stats: ListStats = Field(default_factory=ListStats)


class CustomerTotal(BaseModel):
    customer_id: str
    customer_name: str
    total_amount: Decimal


class DashboardSummary(BaseModel):
    approved_count: int = 0
    approved_total: Decimal = Decimal("0")
    top_customers: List[CustomerTotal] = Field(default_factory=list)
