from travel_desk.models.assignment import Assignment, AssignmentDocumentation, assignment_participants
from travel_desk.models.audit_event import AuditEvent
from travel_desk.models.expense import InCityReport, OutCityReport, OutCountryReport
from travel_desk.models.fullboard_price import FullboardPrice
from travel_desk.models.rbac import Role, UserRole
from travel_desk.models.report import Report, TransportationType, report_transportation_types
from travel_desk.models.review import ReportReview
from travel_desk.models.travel_report import TravelReport
from travel_desk.models.user import User
from travel_desk.models.work_unit import WorkUnit

__all__ = [ "Assignment", "AssignmentDocumentation", "assignment_participants",
           "AuditEvent", "InCityReport", "OutCityReport", "OutCountryReport",
           "FullboardPrice", "Role", "UserRole", "Report", "TransportationType",
           "report_transportation_types", "ReportReview", "TravelReport", "User", "WorkUnit" ]
