"""
User domain model.

A registered customer, identified by CPF.  Each user owns exactly one
:class:`~simbank.models.account.Account`.
"""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint
from sqlmodel import Field, SQLModel

from simbank.models.common import timestamp_field


class User(SQLModel, table=True):
    """
    SQLModel / SQLAlchemy table definition for users.

    Constraints:
    - ``cpf`` is unique and holds exactly the 11 digits (no punctuation).
    - Passwords are stored as a salted scrypt digest, never in clear text.
    """

    __tablename__ = "users"  # type: ignore[assignment]

    __table_args__ = (
        CheckConstraint("length(name) > 1", name="ck_users_name_min_length"),
        CheckConstraint("length(cpf) = 11", name="ck_users_cpf_length"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str = Field(max_length=255)
    cpf: str = Field(unique=True, index=True, max_length=11)
    password_hash: str = Field(max_length=128)
    password_salt: str = Field(max_length=64)
    created_at: datetime = timestamp_field()

    def __repr__(self) -> str:
        return f"<User id={self.id} cpf={self.cpf[:3]}*****{self.cpf[-3:]}>"
