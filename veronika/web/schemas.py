from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class RegisterBody(BaseModel):
    name: str
    email: str
    password: str
    country: Optional[str] = None
    device_id: Optional[str] = None


class LoginBody(BaseModel):
    email: str
    password: str


class GenerateBody(BaseModel):
    # checked by the generation service so a bad prompt answers 400, not 422
    prompt: Any = None
    number_of_images: Any = Field(1, alias='numberOfImages')

    model_config = ConfigDict(populate_by_name=True)


class CashfreeCheckoutBody(BaseModel):
    plan_id: int
    phone: Optional[str] = None
    return_url: Optional[str] = None


class OxapayCheckoutBody(BaseModel):
    plan_id: int
    return_url: Optional[str] = None


class VerifyBody(BaseModel):
    order_id: str = Field(min_length=1)


class CreditsBody(BaseModel):
    credits: int


class PlanUpdateBody(BaseModel):
    credits: Optional[int] = None
    inr_price: Optional[float] = None
    usd_price: Optional[float] = None
    active: Optional[bool] = None


class NoticeBody(BaseModel):
    message: str = ''


class ExchangeRateBody(BaseModel):
    rate: float


class ContactBody(BaseModel):
    email1: str = ''
    email2: str = ''
    location: str = ''
    phone: str = ''
    note: str = ''


class SocialBody(BaseModel):
    instagram: str = ''
    twitter: str = ''
    website: str = ''
    general: str = ''


class LegalBody(BaseModel):
    terms: str = ''
    privacy: str = ''
