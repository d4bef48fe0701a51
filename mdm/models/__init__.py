from mdm.models.stored_record import Base, StoredRecord

__all__ = ["Base", "StoredRecord"]
