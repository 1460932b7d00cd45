# broker/models/user.py
from sqlalchemy import Column, Integer, String

from broker.database.database import Base


class UserModel(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    email = Column(String(255), nullable=False)
    # external identifier, used by every API instead of the internal id
    account_number = Column("accountNumber", String(20), nullable=False, unique=True, index=True)
