"""
Artisans Platform – SQLAlchemy ORM models package.

Imports all model classes so the app can discover them
through a single ``from artisans.models import *`` import.
"""

from artisans.models.user import User                          # noqa: F401
from artisans.models.project import Project                    # noqa: F401
from artisans.models.project_member import ProjectMember       # noqa: F401
from artisans.models.team_invitation import TeamInvitation     # noqa: F401
from artisans.models.timeline_entry import ProjectTimelineEntry  # noqa: F401
from artisans.models.service_request import ServiceRequest     # noqa: F401
from artisans.models.bid import ServiceRequestBid              # noqa: F401
from artisans.models.notification import Notification          # noqa: F401
from artisans.models.project_file import ProjectFile           # noqa: F401
from artisans.models.material import Material                  # noqa: F401
from artisans.models.order import Order                        # noqa: F401
from artisans.models.message import Message                    # noqa: F401
