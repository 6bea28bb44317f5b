# File: config/init_db.py

from signlink.config import Settings
from signlink.db.session import create_db_engine, init_db

if __name__ == "__main__":
    settings = Settings.from_env()
    print(f"Creating database tables in {settings.database_url} ...")
    init_db(create_db_engine(settings.database_url))
    print("Tables created.")
