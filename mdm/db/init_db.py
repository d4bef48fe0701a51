# mdm/db/init_db.py
"""Database initialization and reference data utilities."""

from typing import Any, Dict, List

from sqlalchemy import inspect
from sqlalchemy.engine import Engine

from mdm.core.logging import get_logger
from mdm.models import Base
from mdm.repositories.base.repository_factory import RepositoryFactory
from mdm.schemas import schema_for
from mdm.schemas.common.enums import RecordType
from mdm.services.common.mapping import to_record

logger = get_logger(__name__)

_SEEDED = {
    "status": "Active",
    "approvalStatus": "Approved",
    "createdBy": "admin",
    "createdDate": "2024-01-01T00:00:00Z",
}

# Sample dataset, in dependency order
REFERENCE_DATA: Dict[RecordType, List[Dict[str, Any]]] = {
    RecordType.CATEGORY: [
        {"id": "1", "name": "Electronics"},
        {"id": "2", "name": "Mobile Phones", "parentId": "1"},
        {"id": "3", "name": "Laptops", "parentId": "1"},
    ],
    RecordType.GEOGRAPHY: [
        {"id": "1", "name": "India", "type": "Country"},
        {"id": "2", "name": "Karnataka", "type": "State", "parentId": "1"},
        {"id": "3", "name": "Bangalore", "type": "City", "parentId": "2"},
    ],
    RecordType.ROLE: [
        {"id": "1", "name": "Finance Director", "department": "Finance"},
        {"id": "2", "name": "Finance Manager", "department": "Finance", "parentId": "1"},
    ],
    RecordType.USER: [
        {
            "id": "1",
            "fullName": "John Doe",
            "email": "john.doe@company.com",
            "phoneNumber": "+1234567890",
            "roleId": "1",
            "department": "Finance",
            "geographyIds": ["1"],
            "categoryIds": ["1"],
            "userRole": "Admin",
            "createdBy": "system",
        },
        {
            "id": "2",
            "fullName": "Jane Smith",
            "email": "jane.smith@company.com",
            "phoneNumber": "+1234567891",
            "roleId": "2",
            "department": "Finance",
            "geographyIds": ["2"],
            "categoryIds": ["2"],
            "userRole": "Maker",
        },
    ],
    RecordType.ATTRIBUTE: [
        {
            "id": "1",
            "fieldName": "Battery Life",
            "dataType": "number",
            "context": "Electronics",
            "validationRules": [
                {"type": "range", "value": 0, "message": "Battery life must be greater than 0"},
            ],
        },
        {"id": "2", "fieldName": "Screen Size", "dataType": "string", "context": "Electronics"},
    ],
    RecordType.ENTITY: [
        {
            "id": "1",
            "name": "iPhone 15",
            "entityType": "Product",
            "attributeIds": ["1", "2"],
            "categoryIds": ["2"],
            "geographyIds": ["1"],
            "attributeValues": {"Battery Life": "20", "Screen Size": "6.1 inches"},
            "createdBy": "jane.smith",
        },
    ],
    RecordType.APPROVAL_RULE: [
        {
            "id": "1",
            "ruleName": "High Value Products",
            "entityType": "Product",
            "conditions": [
                {"id": "1", "attributeId": "1", "operator": "greater_than", "value": "15"},
            ],
            "assignedRoles": ["1"],
        },
    ],
}


def init_db(engine: Engine) -> None:
    """
    Create the storage table if it does not exist yet.
    """
    existing_tables = inspect(engine).get_table_names()
    if Base.metadata.tables.keys() <= set(existing_tables):
        logger.info(f"Database already initialized with {len(existing_tables)} tables")
        return
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created successfully")


def drop_db(engine: Engine) -> None:
    """
    Drop the storage table.

    WARNING: This deletes every collection.
    """
    Base.metadata.drop_all(bind=engine)
    logger.warning("All database tables dropped")


def seed_reference_data(repos: RepositoryFactory) -> int:
    """
    Load the sample dataset into collections that are still empty.

    Seeded records are already Approved and are not audited. Returns the
    number of records written.
    """
    written = 0
    for record_type, rows in REFERENCE_DATA.items():
        repo = repos.get(record_type)
        if repo.count():
            logger.info(f"Skipping seed of {record_type.value}: collection not empty")
            continue
        schema = schema_for(record_type)
        for row in rows:
            repo.create(to_record(schema, {**_SEEDED, **row}), audit=False)
            written += 1

    logger.info(f"Seeded {written} reference records")
    return written
