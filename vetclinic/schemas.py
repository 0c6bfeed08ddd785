"""Request/response bodies of the HTTP API."""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field


# =========================
# Auth
# =========================
class SignupIn(BaseModel):
    email: str
    password: str
    first_name: str
    last_name: str
    phone: str
    address_line1: str = ""
    address_line2: str | None = None
    city: str = ""
    state: str = ""
    zip_code: str = ""
    country: str = "Philippines"
    communication_preference: str = "email"


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    role: str


class MeOut(BaseModel):
    id: str
    email: str
    role: str
    account_status: str
    is_active: bool


class ChangePasswordIn(BaseModel):
    current_password: str
    new_password: str


class ProfileUpdateIn(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    alternate_phone: str | None = None
    address_line1: str | None = None
    address_line2: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    country: str | None = None
    communication_preference: str | None = None


class ClientUpdateIn(ProfileUpdateIn):
    notes: str | None = None


# =========================
# Pets
# =========================
class PetIn(BaseModel):
    owner_id: str | None = None
    name: str
    species: str
    date_of_birth: date
    breed: str | None = None
    gender: str | None = None
    color: str | None = None
    weight: Decimal | None = None
    microchip_number: str | None = None
    is_spayed_neutered: bool = False
    special_needs: str | None = None
    behavioral_notes: str | None = None
    current_medical_status: str | None = None


class PetUpdateIn(BaseModel):
    owner_id: str | None = None
    name: str | None = None
    species: str | None = None
    date_of_birth: date | None = None
    breed: str | None = None
    gender: str | None = None
    color: str | None = None
    weight: Decimal | None = None
    microchip_number: str | None = None
    is_spayed_neutered: bool | None = None
    special_needs: str | None = None
    behavioral_notes: str | None = None
    current_medical_status: str | None = None
    is_active: bool | None = None


# =========================
# Appointments
# =========================
class AppointmentIn(BaseModel):
    pet_id: str
    service_code: str
    scheduled_start: datetime
    veterinarian_id: str | None = None
    reason_for_visit: str | None = None
    special_instructions: str | None = None


class StatusIn(BaseModel):
    status: str
    cancellation_reason: str | None = None


class RescheduleIn(BaseModel):
    scheduled_start: datetime


# =========================
# Clinical
# =========================
class TriageIn(BaseModel):
    appointment_id: str
    pet_id: str | None = None
    weight: Decimal | None = None
    temperature: Decimal | None = None
    heart_rate: int | None = None
    respiratory_rate: int | None = None
    mucous_membrane: str | None = None
    triage_level: str = "routine"
    chief_complaint: str | None = None


class ConsultationIn(BaseModel):
    appointment_id: str
    subjective: str = ""
    objective: str = ""
    assessment: str = ""
    plan: str = ""


class PrescriptionIn(BaseModel):
    appointment_id: str
    medication_name: str
    dosage: str
    frequency: str
    duration: str | None = None
    instructions: str | None = None


class VaccinationIn(BaseModel):
    pet_id: str
    vaccine_name: str
    vaccination_date: date
    next_due_date: date | None = None
    batch_number: str | None = None
    notes: str | None = None


# =========================
# Billing
# =========================
class CartItemIn(BaseModel):
    item_type: str = Field(..., pattern="^(service|product)$")
    item_id: str
    quantity: int = Field(1, gt=0)
    unit_price: Decimal | None = None


class CheckoutIn(BaseModel):
    items: list[CartItemIn]
    payment_method: str = "cash"
    client_id: str | None = None
    walk_in_customer_name: str | None = None
    discount_percent: Decimal = Decimal("0")
    tax_percent: Decimal | None = None
    cash_tendered: Decimal | None = None
    transaction_reference: str | None = None
    notes: str | None = None


class InvoiceIn(BaseModel):
    items: list[CartItemIn]
    client_id: str | None = None
    walk_in_customer_name: str | None = None
    discount_percent: Decimal = Decimal("0")
    tax_percent: Decimal | None = None
    due_date: date | None = None
    notes: str | None = None


class PaymentIn(BaseModel):
    amount: Decimal
    payment_method: str
    transaction_reference: str | None = None
    notes: str | None = None


class StockUpdateIn(BaseModel):
    product_id: str
    quantity: int


class InventoryIn(BaseModel):
    updates: list[StockUpdateIn]


class ProductIn(BaseModel):
    product_name: str
    category: str
    price: Decimal
    stock_quantity: int = 0
    low_stock_threshold: int | None = None
    sku: str | None = None
    description: str | None = None


class ProductUpdateIn(BaseModel):
    product_name: str | None = None
    category: str | None = None
    price: Decimal | None = None
    stock_quantity: int | None = None
    low_stock_threshold: int | None = None
    description: str | None = None
    is_active: bool | None = None


class RestockIn(BaseModel):
    quantity: int = Field(..., gt=0)


# =========================
# Employees / notifications
# =========================
class EmployeeIn(BaseModel):
    role: str
    email: str
    password: str
    first_name: str
    last_name: str
    phone: str
    license_number: str | None = None
    employee_id: str | None = None
    position: str | None = None
    department: str | None = None
    specializations: list[str] = Field(default_factory=list)
    consultation_fee: Decimal | None = None
    employment_status: str = "full_time"
    hire_date: date | None = None


class EmployeeUpdateIn(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    account_status: str | None = None
    specializations: list[str] | None = None
    consultation_fee: Decimal | None = None
    employment_status: str | None = None
    position: str | None = None
    department: str | None = None
    access_level: int | None = None


class NotificationIn(BaseModel):
    recipient_id: str
    notification_type: str
    content: str
    subject: str | None = None
    related_entity_type: str | None = None
    related_entity_id: str | None = None


class NotificationStatusIn(BaseModel):
    delivery_status: str | None = None
    error_message: str | None = None


def changes(payload: BaseModel) -> dict[str, Any]:
    """Only the fields the caller actually sent."""
    return payload.model_dump(exclude_unset=True)
