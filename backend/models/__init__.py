# Importing every model registers its table on Base.metadata
from models.role import Role  # noqa: F401
from models.users import User  # noqa: F401
from models.book import Book  # noqa: F401
from models.feedback import Feedback  # noqa: F401
from models.log import Log  # noqa: F401
