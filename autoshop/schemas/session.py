from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class SessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    phone: str
    state: str
    data: dict[str, Any]
    ai_context: list[dict[str, str]]
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
