from sqlalchemy.orm import DeclarativeBase

class Base(DeclarativeBase):
    pass

# Import models so Alembic and create_all can discover them
from travel_desk.models import *  # noqa
