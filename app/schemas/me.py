from pydantic import BaseModel


class MeOut(BaseModel):
    api_key_id: str | None
    role: str
    principal_id: str | None
