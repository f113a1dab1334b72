import json
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool


class NotificationPayload(BaseModel):
    title: str = Field(..., min_length=1)
    body: str = Field(..., min_length=1)
    data: Dict[str, Any] = Field(default_factory=dict)

    def string_data(self) -> Dict[str, str]:
        # FCM data messages only accept string values.
        return {
            str(key): value if isinstance(value, str) else json.dumps(value)
            for key, value in self.data.items()
        }


class DispatchResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sent: int = Field(0, ge=0)
    failed: Optional[int] = Field(None, ge=0)
    total_tokens: Optional[int] = Field(None, ge=0, alias="totalTokens")
    skipped: bool = False

    @classmethod
    def skipped_result(cls) -> "DispatchResult":
        return cls(sent=0, skipped=True)


class PushSendRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(..., min_length=1)
    body: str = Field(..., min_length=1)
    data: Optional[Dict[str, Any]] = None
    tokens: Optional[List[Optional[str]]] = None
    user_ids: Optional[List[Optional[str]]] = Field(None, alias="userIds")
    role: Optional[str] = None
    all: StrictBool = False

    def to_payload(self) -> NotificationPayload:
        return NotificationPayload(title=self.title, body=self.body, data=self.data or {})
