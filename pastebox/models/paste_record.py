from sqlalchemy import BigInteger, Boolean, Column, Integer, String, Text

from pastebox.database import Base


class PasteRecord(Base):
    __tablename__ = "pastes"

    id = Column(BigInteger, primary_key=True, autoincrement=False)
    content = Column(Text, nullable=False, default="")
    # legacy locator string, see pastebox.services.locator
    file_name = Column(String(1024), nullable=True)
    file_size = Column(BigInteger, nullable=True)
    privacy = Column(String(16), nullable=False)
    encrypted_key = Column(Text, nullable=True)
    editable = Column(Boolean, nullable=False, default=True)
    extension = Column(String(64), nullable=False, default="")
    paste_type = Column(String(16), nullable=False, default="text")
    created = Column(BigInteger, nullable=False)
    expiration = Column(BigInteger, nullable=False, default=0, index=True)
    last_read = Column(BigInteger, nullable=False)
    read_count = Column(Integer, nullable=False, default=0)
    burn_after_reads = Column(Integer, nullable=False, default=0)
