from pydantic import BaseModel, EmailStr, Field
from datetime import datetime
from typing import Optional

class UserLogin(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)

class UserCreate(UserLogin):
    email: EmailStr
    phone: str = Field(min_length=3)
    full_name: str = Field(alias="fullName", min_length=1)
    country: str = Field(min_length=1)

    class Config:
        populate_by_name = True

class UserRead(BaseModel):
    id: int
    username: str
    email: EmailStr
    phone: str
    full_name: str = Field(serialization_alias="fullName")
    country: str
    created_at: Optional[datetime] = Field(None, serialization_alias="createdAt")

    class Config:
        from_attributes = True
