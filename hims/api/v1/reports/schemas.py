from pydantic import BaseModel
from typing import List, Dict, Any


class DashboardStats(BaseModel):
    total_patients: int
    todays_appointments: int
    active_visits: int
    current_admissions: int
    revenue_this_month: float
    pending_invoices: int
    low_stock_items: int
    bodies_in_storage: int
    available_beds: int


class ReportSummary(BaseModel):
    id: str
    name: str
    description: str


class ReportCategory(BaseModel):
    id: str
    title: str
    reports: List[ReportSummary]


class ReportResult(BaseModel):
    id: str
    name: str
    category: str
    columns: List[str]
    count: int
    rows: List[Dict[str, Any]]
