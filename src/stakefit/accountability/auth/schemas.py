"""Pydantic schemas for user accounts."""

from typing import Optional

from pydantic import Field

from ..db.schemas import DocumentModel, Timestamp


class UserAccount(DocumentModel):
    """A signed-in user as seen by the challenge core."""

    id: Optional[str] = None
    email: str
    display_name: str
    token_balance: float = Field(0.0, ge=0)
    created_at: Timestamp
