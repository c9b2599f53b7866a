"""
Passage unique du sweeper, pour un cron système :

    python -m scripts.sweep
"""

import logging

from app.core.config import settings
from app.core.logging import configure_logging
from app.db.session import engine, Session, init_db
from app.features.sweeper.runner import run_sweep

logger = logging.getLogger("scripts.sweep")


def main() -> None:
    configure_logging(settings.LOG_LEVEL)
    init_db()
    with Session(engine) as session:
        stats = run_sweep(session)
    logger.info("Sweep done: %s", stats)


if __name__ == "__main__":
    main()
