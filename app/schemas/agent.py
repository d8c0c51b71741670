from pydantic import BaseModel, ConfigDict, EmailStr


class AgentCreate(BaseModel):
    name: str
    email: EmailStr
    phone: str
    area: str | None = None
    license_no: str | None = None
    password: str


class AgentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: EmailStr
    phone: str
    area: str | None
    license_no: str | None
    status: str


class AgentReportRow(BaseModel):
    agent_id: str
    name: str
    total_properties: int
    average_rating: float | None = None
    feedback_count: int = 0
