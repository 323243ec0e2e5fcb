"""SQLModel table models — import here so metadata is populated."""

from unitvest.models.profile import Profile  # noqa: F401
from unitvest.models.investment import Investment  # noqa: F401
from unitvest.models.accrual_event import AccrualEvent  # noqa: F401
from unitvest.models.notification import Notification  # noqa: F401
