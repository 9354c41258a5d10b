from sqlalchemy import Column, String, Text
from staff_portal.database import Base

STAFF_PARTITION = "staff"
NOTES_ROW = "notes"


class StaffEntity(Base):
    __tablename__ = "staff"

    partition_key = Column(String, primary_key=True, default=STAFF_PARTITION)
    row_key = Column(String, primary_key=True)  # username
    name = Column(String, nullable=False, default="")
    phone = Column(String, nullable=False, default="")
    designation = Column(String, nullable=False, default="")
    password_hash = Column(String, nullable=True)


class NoteEntity(Base):
    __tablename__ = "staff_notes"

    partition_key = Column(String, primary_key=True)  # principal
    row_key = Column(String, primary_key=True, default=NOTES_ROW)
    notes = Column(Text, nullable=False, default="")
