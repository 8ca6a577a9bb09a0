"""
Source Video Model
The generated video an export is cut from
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import Field

from .edit_state import CamelModel

READY_STATUSES = {"completed", "succeeded"}


class VideoAsset(CamelModel):
    """Source video owned by a client"""
    id: str
    client_id: str
    status: str = "pending"
    video_url: Optional[str] = None
    duration_seconds: Optional[float] = None
    edit_state: Optional[Dict[str, Any]] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_ready(self) -> bool:
        return self.status in READY_STATUSES
