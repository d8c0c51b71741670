from pydantic import BaseModel, ConfigDict, EmailStr


class UserCreate(BaseModel):
    name: str
    email: EmailStr
    phone: str
    password: str


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: EmailStr
    phone: str


class AdminBootstrap(BaseModel):
    name: str
    email: EmailStr
    password: str


class AdminOut(BaseModel):
    id: str
    name: str
    email: EmailStr


class SessionCreate(BaseModel):
    role: str
    email: EmailStr
    password: str


class SessionOut(BaseModel):
    role: str
    principal_id: str
    api_key: str  # returned only once
    key_prefix: str
