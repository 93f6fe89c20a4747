import logging

from backend.services.database.database import Base, engine
from backend.services.database import models  # noqa: F401  (registers tables on Base)

logger = logging.getLogger(__name__)


def init_db() -> None:
    Base.metadata.create_all(bind=engine)
    logger.info("Tariff tables ready: %s", ", ".join(sorted(Base.metadata.tables)))


if __name__ == "__main__":  # pragma: no cover
    init_db()
