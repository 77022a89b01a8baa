from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from marketplace.core.config import settings

# The engine owns the connection pool; nothing connects until first use.
engine = create_engine(settings.DATABASE_URL, pool_pre_ping=True)

# One session per request.
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)