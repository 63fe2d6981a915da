"""Contract domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ContractCreate(BaseModel):
    order_id: int
    event_date: Optional[date] = None
    venue_name: Optional[str] = Field(None, max_length=255)
    venue_address: Optional[str] = None
    guest_count: Optional[int] = Field(None, gt=0)
    ceremony_time: Optional[str] = Field(None, max_length=20)
    reception_time: Optional[str] = Field(None, max_length=20)
    services_description: Optional[str] = None
    total_amount: Optional[int] = Field(None, ge=0)
    deposit_percentage: Optional[int] = Field(None, ge=0, le=100)
    payment_schedule: Optional[str] = None
    contract_body: Optional[str] = None
    notes: Optional[str] = None
    valid_days: Optional[int] = Field(None, gt=0, le=365)


class ContractUpdate(BaseModel):
    event_date: Optional[date] = None
    venue_name: Optional[str] = Field(None, max_length=255)
    venue_address: Optional[str] = None
    guest_count: Optional[int] = Field(None, gt=0)
    ceremony_time: Optional[str] = Field(None, max_length=20)
    reception_time: Optional[str] = Field(None, max_length=20)
    services_description: Optional[str] = None
    total_amount: Optional[int] = Field(None, ge=0)
    deposit_percentage: Optional[int] = Field(None, ge=0, le=100)
    payment_schedule: Optional[str] = None
    contract_body: Optional[str] = None
    notes: Optional[str] = None
    valid_until: Optional[date] = None


class ContractResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_id: int
    contract_number: str
    status: str
    event_date: Optional[date] = None
    venue_name: Optional[str] = None
    venue_address: Optional[str] = None
    guest_count: Optional[int] = None
    ceremony_time: Optional[str] = None
    reception_time: Optional[str] = None
    services_description: Optional[str] = None
    total_amount: Optional[int] = None
    deposit_percentage: int
    deposit_amount: Optional[int] = None
    payment_schedule: Optional[str] = None
    contract_body: Optional[str] = None
    notes: Optional[str] = None
    valid_until: Optional[date] = None
    signing_token: str
    signer_name: Optional[str] = None
    signed_at: Optional[datetime] = None
    signer_ip: Optional[str] = None
    sent_at: Optional[datetime] = None


class PublicContractResponse(BaseModel):
    contract_number: str
    status: str
    customer_name: str
    order_number: str
    event_date: Optional[date] = None
    venue_name: Optional[str] = None
    venue_address: Optional[str] = None
    guest_count: Optional[int] = None
    total_amount: Optional[int] = None
    deposit_percentage: int
    deposit_amount: Optional[int] = None
    payment_schedule: Optional[str] = None
    rendered_body: str
    valid_until: Optional[date] = None
    signer_name: Optional[str] = None
    signed_at: Optional[datetime] = None


class ContractSignRequest(BaseModel):
    signer_name: Optional[str] = None
    agreed: bool = False


class ContractSignResponse(BaseModel):
    success: bool = True
    status: str
    signed_at: Optional[datetime] = None
