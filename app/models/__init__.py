from app.models.base import Base  # noqa: F401

from app.models.user import User  # noqa: F401
from app.models.agent import Agent  # noqa: F401
from app.models.admin import Admin  # noqa: F401
from app.models.api_key import ApiKey  # noqa: F401
from app.models.property import Property  # noqa: F401
from app.models.image import PropertyImage  # noqa: F401
from app.models.booking import Booking  # noqa: F401
from app.models.payment import Payment  # noqa: F401
from app.models.outbox import OutboxEvent  # noqa: F401
from app.models.notification import Notification  # noqa: F401
from app.models.audit_log import AuditLog  # noqa: F401
from app.models.enquiry import Enquiry  # noqa: F401
from app.models.feedback import AgentFeedback  # noqa: F401
