# amanah/database_init.py
import logging
from sqlalchemy_utils import database_exists, create_database
from amanah.database import DATABASE_URL, Base, engine

logger = logging.getLogger(__name__)


def ensure_database():
    if not database_exists(DATABASE_URL):
        create_database(DATABASE_URL)
        logger.info("Database created: %s", engine.url.render_as_string(hide_password=True))
    else:
        logger.info("Database already exists: %s", engine.url.render_as_string(hide_password=True))

    # models must be imported before create_all sees them
    from amanah.models import user, wallet, transaction  # noqa: F401
    Base.metadata.create_all(bind=engine)
