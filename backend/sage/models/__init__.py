"""ORM Models — SQLAlchemy declarative models.

Invariants:
    - All models inherit from Base (db/base.py)
    - All models imported here so metadata is complete before create_all / autogenerate
"""

from sage.models.adventure_session import AdventureSession  # noqa: F401
from sage.models.tool_call import ToolCall  # noqa: F401
from sage.models.reference import (  # noqa: F401
    ReferenceAdversary, ReferenceFrame, ReferenceItem,
)
