# lms/schemas/user.py

from pydantic import BaseModel, EmailStr

class UserCreate(BaseModel):
    name: str
    email: EmailStr
    password: str

class UserResponse(BaseModel):
    id: int
    name: str
    email: EmailStr
    role: str
    bio: str | None = None
    profile_image_url: str | None = None

    model_config = {"from_attributes": True}


class UserMeResponse(UserResponse):
    permissions: list[str]


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class ProfileUpdate(BaseModel):
    name: str | None = None
    bio: str | None = None
    profile_image_url: str | None = None


class UserUpdate(BaseModel):
    name: str | None = None
    email: EmailStr | None = None
    role: str | None = None
    password: str | None = None
