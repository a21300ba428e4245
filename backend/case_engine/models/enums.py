import enum


class ProcessType(str, enum.Enum):
    BRC = "BRC"
    BRRC = "BRRC"
    BGRC = "BGRC"
    BCRC = "BCRC"
    NON_BRC = "NON_BRC"


class UserRole(str, enum.Enum):
    HOSPITAL_SPOC = "hospital_spoc"
    HOSPITAL_DOCTOR = "hospital_doctor"
    VERIFIER = "verifier"
    COMMITTEE_MEMBER = "committee_member"
    ACCOUNTS = "accounts"
    BENI_VOLUNTEER = "beni_volunteer"
    ADMIN = "admin"
    LEADERSHIP = "leadership"


class CaseStatus(str, enum.Enum):
    DRAFT = "Draft"
    SUBMITTED = "Submitted"
    UNDER_VERIFICATION = "Under_Verification"
    UNDER_REVIEW = "Under_Review"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    CLOSED = "Closed"
    RETURNED = "Returned"


class CommitteeOutcome(str, enum.Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    NEED_MORE_INFO = "Need_More_Info"
    DEFERRED = "Deferred"


class StatusGroup(str, enum.Enum):
    DRAFT = "Draft"
    IN_REVIEW = "In Review"
    SUBMITTED_TO_COMMITTEE = "Submitted to Committee"
    APPROVED = "Approved"
    RETURNED = "Returned"
    REJECTED = "Rejected"
    CLOSED = "Closed"
    OTHER = "Other"


class MilestoneStatus(str, enum.Enum):
    UPCOMING = "Upcoming"
    DUE = "Due"
    COMPLETED = "Completed"


class MetricValueType(str, enum.Enum):
    BOOLEAN = "BOOLEAN"
    TEXT = "TEXT"


class IntakeDocument(str, enum.Enum):
    FUND_APPLICATION = "fund_application"
    INTERIM_SUMMARY = "interim_summary"
