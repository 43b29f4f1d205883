from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator
from typing import Optional, List, Literal
from datetime import date, datetime

ClientKind = Literal["individual", "company"]
ProjectStatus = Literal["planning", "active", "done", "suspended"]
QuoteStatus = Literal["draft", "sent", "accepted", "refused", "expired"]
InvoiceStatus = Literal["draft", "sent", "paid", "overdue", "cancelled"]
Activity = Literal["commercial", "artisanal", "liberal"]

# ---- Auth ----
class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"

class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)
    first_name: Optional[str] = None
    last_name: Optional[str] = None

class UserLogin(BaseModel):
    email: EmailStr
    password: str

class MeOut(BaseModel):
    id: int
    email: EmailStr

# ---- Paramètres entreprise ----
class CompanySettingsIn(BaseModel):
    company_name: str = Field(min_length=1, max_length=200)
    siret: Optional[str] = Field(default=None, pattern=r"^\d{14}$")
    vat_number: Optional[str] = None
    address: Optional[str] = None
    postal_code: Optional[str] = None
    city: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    rib: Optional[str] = None
    iban: Optional[str] = None
    bic: Optional[str] = None

class CompanySettingsOut(CompanySettingsIn):
    id: int
    model_config = ConfigDict(from_attributes=True)

# ---- Clients ----
class ClientBase(BaseModel):
    kind: ClientKind = "individual"
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    company_name: Optional[str] = None
    email: EmailStr
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    siret: Optional[str] = None
    vat_number: Optional[str] = None
    notes: Optional[str] = None

class ClientCreate(ClientBase):
    @model_validator(mode="after")
    def _check_name(self):
        if self.kind == "company" and not self.company_name:
            raise ValueError("company_name is required for a company client")
        if self.kind == "individual" and not (self.first_name or self.last_name):
            raise ValueError("first_name or last_name is required for an individual client")
        return self

class ClientUpdate(BaseModel):
    kind: Optional[ClientKind] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    company_name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    siret: Optional[str] = None
    vat_number: Optional[str] = None
    notes: Optional[str] = None

class ClientOut(ClientBase):
    id: int
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)

# ---- Projets / tâches ----
class ProjectBase(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    client_id: Optional[int] = None
    description: Optional[str] = None
    status: ProjectStatus = "planning"
    hourly_rate_cents: Optional[int] = Field(default=None, ge=0)
    estimated_hours: Optional[float] = Field(default=None, ge=0)
    deadline: Optional[date] = None

class ProjectCreate(ProjectBase):
    pass

class ProjectUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    client_id: Optional[int] = None
    description: Optional[str] = None
    status: Optional[ProjectStatus] = None
    hourly_rate_cents: Optional[int] = Field(default=None, ge=0)
    estimated_hours: Optional[float] = Field(default=None, ge=0)
    deadline: Optional[date] = None

class ProjectOut(ProjectBase):
    id: int
    model_config = ConfigDict(from_attributes=True)

class TaskCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    completed: bool = False

class TaskUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    completed: Optional[bool] = None

class TaskOut(TaskCreate):
    id: int
    project_id: int
    model_config = ConfigDict(from_attributes=True)

# ---- Temps ----
class TimeEntryStart(BaseModel):
    project_id: Optional[int] = None
    task_id: Optional[int] = None
    description: Optional[str] = "Temps de travail"
    hourly_rate_cents: Optional[int] = Field(default=None, ge=0)

class TimeEntryCreate(TimeEntryStart):
    start_time: datetime
    end_time: datetime

class TimeEntryOut(BaseModel):
    id: int
    project_id: Optional[int] = None
    task_id: Optional[int] = None
    description: Optional[str] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    duration_seconds: int = 0
    is_running: bool = False
    hourly_rate_cents: Optional[int] = None
    model_config = ConfigDict(from_attributes=True)

# ---- Catalogue ----
class CatalogItemBase(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    unit_price_cents: int = Field(ge=0)
    vat_rate: float = Field(default=0, ge=0, le=100)
    unit: Optional[str] = None
    category: Optional[str] = None

class CatalogItemCreate(CatalogItemBase):
    pass

class CatalogItemUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    unit_price_cents: Optional[int] = Field(default=None, ge=0)
    vat_rate: Optional[float] = Field(default=None, ge=0, le=100)
    unit: Optional[str] = None
    category: Optional[str] = None

class CatalogItemOut(CatalogItemBase):
    id: int
    model_config = ConfigDict(from_attributes=True)

# ---- Lignes ----
class LineItemIn(BaseModel):
    catalog_item_id: Optional[int] = None
    product: Optional[str] = None
    description: str = Field(min_length=1, max_length=300)
    quantity: float = Field(gt=0)
    unit_price_cents: int = Field(ge=0)
    vat_rate: float = Field(default=0, ge=0, le=100)

class LineItemOut(LineItemIn):
    id: int
    quote_id: Optional[int] = None
    invoice_id: Optional[int] = None
    amount_cents: int
    position: int = 0
    model_config = ConfigDict(from_attributes=True)

# ---- Devis ----
class QuoteCreate(BaseModel):
    client_id: int
    status: QuoteStatus = "draft"
    issue_date: Optional[date] = None
    validity_date: Optional[date] = None
    notes: Optional[str] = None
    terms: Optional[str] = None
    line_items: List[LineItemIn] = Field(min_length=1)

class QuoteUpdate(BaseModel):
    client_id: Optional[int] = None
    status: Optional[QuoteStatus] = None
    issue_date: Optional[date] = None
    validity_date: Optional[date] = None
    notes: Optional[str] = None
    terms: Optional[str] = None
    line_items: Optional[List[LineItemIn]] = Field(default=None, min_length=1)

class QuoteOut(BaseModel):
    id: int
    number: str
    client_id: int
    status: str
    issue_date: Optional[date] = None
    validity_date: Optional[date] = None
    subtotal_cents: int
    vat_amount_cents: int
    total_cents: int
    notes: Optional[str] = None
    terms: Optional[str] = None
    line_items: List[LineItemOut] = []
    model_config = ConfigDict(from_attributes=True)

# ---- Factures ----
class InvoiceCreate(BaseModel):
    client_id: int
    quote_id: Optional[int] = None
    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    notes: Optional[str] = None
    payment_terms: Optional[str] = None
    line_items: List[LineItemIn] = Field(min_length=1)

class InvoiceUpdate(BaseModel):
    client_id: Optional[int] = None
    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    notes: Optional[str] = None
    payment_terms: Optional[str] = None
    line_items: Optional[List[LineItemIn]] = Field(default=None, min_length=1)

class InvoiceStatusUpdate(BaseModel):
    status: InvoiceStatus
    paid_date: Optional[date] = None

class InvoiceOut(BaseModel):
    id: int
    number: str
    client_id: int
    quote_id: Optional[int] = None
    status: str
    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    paid_date: Optional[date] = None
    subtotal_cents: int
    vat_amount_cents: int
    total_cents: int
    notes: Optional[str] = None
    payment_terms: Optional[str] = None
    line_items: List[LineItemOut] = []
    model_config = ConfigDict(from_attributes=True)

class NextNumberOut(BaseModel):
    number: str

# ---- Dépenses ----
class ExpenseBase(BaseModel):
    description: str = Field(min_length=1, max_length=300)
    amount_cents: int = Field(ge=0)
    category: Optional[str] = None
    expense_date: date
    vat_amount_cents: Optional[int] = Field(default=None, ge=0)
    receipt_url: Optional[str] = None

class ExpenseCreate(ExpenseBase):
    pass

class ExpenseUpdate(BaseModel):
    description: Optional[str] = Field(default=None, min_length=1, max_length=300)
    amount_cents: Optional[int] = Field(default=None, ge=0)
    category: Optional[str] = None
    expense_date: Optional[date] = None
    vat_amount_cents: Optional[int] = Field(default=None, ge=0)
    receipt_url: Optional[str] = None

class ExpenseOut(ExpenseBase):
    id: int
    model_config = ConfigDict(from_attributes=True)

# ---- Tableau de bord / rapports ----
class DashboardMetricsOut(BaseModel):
    current_revenue_cents: int
    previous_revenue_cents: int
    revenue_change_percent: Optional[float] = None
    pending_quotes_amount_cents: int
    pending_quotes_count: int
    unpaid_invoices_amount_cents: int
    unpaid_invoices_count: int
    overdue_count: int
    urssaf_estimate_cents: int
    expenses_month_cents: int
    expenses_total_cents: int
    partial: bool = False

class MonthlyRevenueOut(BaseModel):
    month: str
    amount_cents: int

class YearSummaryOut(BaseModel):
    year: int
    revenue_cents: int
    expenses_cents: int
    net_cents: int
    individual_clients: int
    company_clients: int

class UrssafOut(BaseModel):
    revenue_cents: int
    activity: Activity
    acre: bool
    flat_rate: bool
    rate: float
    contribution_cents: int
    quarterly_cents: int
    monthly_cents: int
