"""Import every model module so ``Base.metadata`` is complete and string
relationships resolve."""

from backend.app.models import audit, inventory, user  # noqa: F401
from backend.app.core.database import Base

metadata = Base.metadata
