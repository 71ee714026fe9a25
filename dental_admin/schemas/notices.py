"""Transient operator notices."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel


class NoticeLevel(str, Enum):
    """Notice level; drives the toast colour."""

    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"
    WARNING = "warning"


class Notice(BaseModel):
    """One auto-dismissing notification."""

    level: NoticeLevel
    message: str
    created_at: datetime
    expires_at: datetime
