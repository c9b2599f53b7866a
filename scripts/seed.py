"""
Remplit une base de démo : comptes, une partie ouverte et quelques réservations.

    python -m scripts.seed [chemin/vers/seed.yaml]
"""

import logging
import sys

from app.core.config import settings
from app.core.logging import configure_logging
from app.db.session import engine, Session, init_db
from app.db.seed import seed_all

DEFAULT_SEED_PATH = "app/db/seed_data.yaml"

logger = logging.getLogger(__name__)


def run_seed(seed_path: str = DEFAULT_SEED_PATH):
    configure_logging(settings.LOG_LEVEL)
    init_db()
    with Session(engine) as session:
        seed_all(session=session, seed_path=seed_path)
    logger.info("Seed loaded from %s", seed_path)


if __name__ == "__main__":
    run_seed(sys.argv[1] if len(sys.argv) > 1 else DEFAULT_SEED_PATH)
