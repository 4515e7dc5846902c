import logging
import os

from sqlalchemy.orm import Session

from hrportal.core.security import hash_password
from hrportal.database.base import Base
from hrportal.database.session import SessionLocal, engine
from hrportal.models.user import User

logger = logging.getLogger(__name__)


def create_ceo(db: Session, email: str, password: str, name: str = "Company CEO") -> bool:
    if db.query(User).filter(User.role == "ceo").first():
        logger.info("CEO account already exists")
        return False

    db.add(User(
        name=name,
        email=email.lower(),
        password_hash=hash_password(password),
        role="ceo",
        force_password_change=True
    ))
    db.commit()
    logger.info("CEO account created for %s", email)
    return True


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        create_ceo(
            db,
            email=os.environ.get("CEO_EMAIL", "ceo@company.com"),
            password=os.environ.get("CEO_PASSWORD", "Ceo@12345"),
        )
    finally:
        db.close()
