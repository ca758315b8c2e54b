from pydantic import BaseModel, ConfigDict, field_validator
from typing import Optional
from uuid import UUID

from inventa.common.validators import validate_email_address, format_colombia_phone


class ContactBase(BaseModel):
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("El nombre es obligatorio")
        return v.strip()

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        if v and not validate_email_address(v):
            raise ValueError("Correo electrónico inválido")
        return v

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        return format_colombia_phone(v) if v else v


class CustomerCreate(ContactBase):
    id_number: Optional[str] = None


class ProviderCreate(ContactBase):
    nit: Optional[str] = None


class CustomerOut(BaseModel):
    id: UUID
    name: str
    id_number: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ProviderOut(BaseModel):
    id: UUID
    name: str
    nit: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
