"""
Database model registry.

Importing this module registers every table with ``SQLModel.metadata``,
which must happen before ``create_all()`` runs.
"""

from unitvest.models.accrual_event import AccrualEvent  # noqa: F401
from unitvest.models.investment import Investment  # noqa: F401
from unitvest.models.notification import Notification  # noqa: F401
from unitvest.models.profile import Profile  # noqa: F401
