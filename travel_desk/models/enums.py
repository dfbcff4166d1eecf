import enum


class ReportStatus(str, enum.Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    REJECTED = "rejected"
    APPROVED = "approved"


class ReviewStatus(str, enum.Enum):
    APPROVED = "approved"
    REJECTED = "rejected"


class ReviewerType(str, enum.Enum):
    COMMITMENT_OFFICER = "commitment_officer"
    SECTION_HEAD = "section_head"


class TravelType(str, enum.Enum):
    IN_CITY = "in_city"
    OUT_CITY = "out_city"
    OUT_COUNTRY = "out_country"


class RoleName(str, enum.Enum):
    ADMIN = "admin"
    SUPERADMIN = "superadmin"
    EMPLOYEE = "employee"
    LEADER = "leader"
    VERIFICATOR = "verificator"


def check_in(column: str, values: type[enum.Enum]) -> str:
    """SQL fragment for a CheckConstraint limiting `column` to the enum values."""
    allowed = ",".join(f"'{v.value}'" for v in values)
    return f"{column} IN ({allowed})"
