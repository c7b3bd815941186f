from models.base_model import Base, BaseModel
from sqlalchemy import Column, String


class User(BaseModel, Base):
    """Identity record. Owned by the account subsystem; the session core only reads id and role."""
    __tablename__ = "users"
    f_name = Column(String(255), nullable=True)
    l_name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(32), nullable=True)

    @property
    def password(self):
        raise AttributeError("Password: Write-only field")
