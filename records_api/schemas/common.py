from enum import Enum


class UserRole(str, Enum):
    SUPER_ADMIN = "super_admin"
    ORG_ADMIN = "org_admin"
    PRACTITIONER = "practitioner"
    STAFF = "staff"
    READONLY = "readonly"


class MembershipStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


# Membership roles that may administer an organization.
ORG_ADMIN_ROLES = frozenset({"admin", "super_admin"})

# Membership role granted to super admins by registration and self-heal.
SUPER_ADMIN_MEMBERSHIP_ROLE = "admin"
