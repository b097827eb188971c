"""Starknet Lightning Mixer - User model."""

from datetime import datetime

from sqlmodel import Field, SQLModel

from mixer.utils.helpers import utc_now


class User(SQLModel, table=True):
    """Depositor record, created or refreshed on every deposit.

    Attributes:
        id: Auto-increment primary key
        address: Depositor wallet address (unique)
        nonce: Reserved for signed-login flows
        created_at: First seen
        last_active_at: Last deposit
    """

    __tablename__ = "users"

    id: int | None = Field(default=None, primary_key=True)
    address: str = Field(max_length=128, unique=True, index=True)
    nonce: int = Field(default=0)
    created_at: datetime = Field(default_factory=utc_now)
    last_active_at: datetime = Field(default_factory=utc_now)
