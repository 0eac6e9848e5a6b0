# Import models so that SQLAlchemy metadata includes them on app startup
from .user import User, Role  # noqa: F401
from .store import Store  # noqa: F401
from .rating import Rating  # noqa: F401
