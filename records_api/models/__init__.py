# Table models, imported so SQLModel.metadata holds every table before create_all.
from .base import UUIDMixin, TimestampMixin  # noqa: F401
from .organization import Organization  # noqa: F401
from .user import User  # noqa: F401
from .user_org import UserOrganizationAccess  # noqa: F401
from .patient import Patient, PatientOrganization  # noqa: F401
from .practitioner import Practitioner, PractitionerOrganization  # noqa: F401
from .appointment import Appointment  # noqa: F401
from .audit_log import AuditLog  # noqa: F401
