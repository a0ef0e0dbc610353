import logging
import os
import sqlite3

logger = logging.getLogger(__name__)

DATABASE_FILE = "authenticator.db"


def setup_database(path: str = DATABASE_FILE) -> None:
    """Create the database file and the key/value table if they are missing."""

    # Make sure the parent directory exists
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    conn = sqlite3.connect(path)
    try:
        cursor = conn.cursor()

        # One row per record: the credential list, the selected id, settings
        cursor.execute('''
        CREATE TABLE IF NOT EXISTS kv_store (
            key TEXT PRIMARY KEY,
            value BLOB NOT NULL,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
        ''')

        conn.commit()
    finally:
        conn.close()
    logger.debug("Database ready at %s", path)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    setup_database()
    logger.info("Database setup completed successfully!")
