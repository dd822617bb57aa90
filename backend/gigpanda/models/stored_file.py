from sqlalchemy import Column, DateTime, Integer, LargeBinary, String

from ..db.database import Base, utcnow

class StoredFile(Base):
    __tablename__ = "stored_files"

    id = Column(Integer, primary_key=True)
    storage_key = Column(String(64), unique=True, nullable=False, index=True)
    filename = Column(String(255), nullable=False)
    mimetype = Column(String(100), nullable=False)
    size = Column(Integer, nullable=False)
    data = Column(LargeBinary, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    def __repr__(self):
        return f"<StoredFile {self.storage_key} {self.filename}>"
