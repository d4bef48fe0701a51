"""
Builds a fully wired governance instance.
"""

from typing import Optional

from mdm.config.settings import Settings, get_settings
from mdm.core.logging import get_logger
from mdm.db.provider import InMemoryPersistenceProvider, PersistenceProvider
from mdm.repositories.base.repository_factory import RepositoryFactory
from mdm.services.governance.governance_service import GovernanceService

logger = get_logger(__name__)


def create_provider(settings: Settings) -> PersistenceProvider:
    """
    Persistence provider selected by `PERSISTENCE_BACKEND`.

    The SQLAlchemy stack is imported only when it is configured.
    """
    if not settings.uses_database():
        return InMemoryPersistenceProvider()

    from mdm.db.session import create_db_engine, create_session_factory
    from mdm.db.sqlalchemy_provider import SqlAlchemyPersistenceProvider

    engine = create_db_engine(settings)
    return SqlAlchemyPersistenceProvider(create_session_factory(engine), engine=engine)


def build_governance_service(
    settings: Optional[Settings] = None,
    provider: Optional[PersistenceProvider] = None,
    seed: bool = False,
) -> GovernanceService:
    """
    Create a GovernanceService with its own repositories.

    Args:
        settings: Configuration; defaults to the cached environment settings
        provider: Persistence provider; defaults to the configured backend
        seed: Load the reference dataset into empty collections
    """
    settings = settings or get_settings()
    provider = provider or create_provider(settings)
    service = GovernanceService(settings, RepositoryFactory(provider))

    if seed:
        from mdm.db.init_db import seed_reference_data

        seed_reference_data(service.repos)

    logger.info(
        f"Governance service ready ({settings.PERSISTENCE_BACKEND} backend)",
        extra={"environment": settings.ENVIRONMENT},
    )
    return service
