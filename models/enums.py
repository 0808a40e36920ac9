from enum import Enum


class BaseStrEnum(str, Enum):
    """
    Base enum that serializes cleanly to a string
    and provides a .list() method for UI dropdowns.
    """

    def __str__(self):
        return str(self.value)

    @classmethod
    def list(cls):
        return [item.value for item in cls]


# -----------------------------------------------------
# PERMITS
# -----------------------------------------------------
class PermitStatus(BaseStrEnum):
    DRAFT = "DRAFT"
    READY_TO_SUBMIT = "READY_TO_SUBMIT"
    SUBMITTED = "SUBMITTED"
    UNDER_REVIEW = "UNDER_REVIEW"
    CORRECTIONS_NEEDED = "CORRECTIONS_NEEDED"
    RESUBMITTED = "RESUBMITTED"
    APPROVED = "APPROVED"
    DENIED = "DENIED"
    PERMIT_ISSUED = "PERMIT_ISSUED"
    INSPECTION_SCHEDULED = "INSPECTION_SCHEDULED"
    INSPECTION_PASSED = "INSPECTION_PASSED"
    INSPECTION_FAILED = "INSPECTION_FAILED"
    CERTIFICATE_OF_OCCUPANCY = "CERTIFICATE_OF_OCCUPANCY"
    CLOSED = "CLOSED"
    EXPIRED = "EXPIRED"


class SubcodeType(BaseStrEnum):
    """NJ Uniform Construction Code subcodes."""

    BUILDING = "BUILDING"
    PLUMBING = "PLUMBING"
    ELECTRICAL = "ELECTRICAL"
    FIRE = "FIRE"
    ZONING = "ZONING"
    MECHANICAL = "MECHANICAL"


class ProjectType(BaseStrEnum):
    NEW_CONSTRUCTION = "NEW_CONSTRUCTION"
    RENOVATION = "RENOVATION"
    ADDITION = "ADDITION"
    DEMOLITION = "DEMOLITION"
    CHANGE_OF_USE = "CHANGE_OF_USE"
    INTERIOR_ALTERATION = "INTERIOR_ALTERATION"
    REPAIR = "REPAIR"
    ACCESSORY_STRUCTURE = "ACCESSORY_STRUCTURE"


class Priority(BaseStrEnum):
    """Shared by permits and tasks."""

    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    URGENT = "URGENT"


class MilestoneStatus(BaseStrEnum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    SKIPPED = "SKIPPED"


class InspectionStatus(BaseStrEnum):
    NOT_SCHEDULED = "NOT_SCHEDULED"
    SCHEDULED = "SCHEDULED"
    PASSED = "PASSED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class PartyRole(BaseStrEnum):
    OWNER = "OWNER"
    EXPEDITOR = "EXPEDITOR"
    CONTRACTOR = "CONTRACTOR"
    ARCHITECT = "ARCHITECT"
    ENGINEER = "ENGINEER"
    INSPECTOR = "INSPECTOR"
    CITY_CONTACT = "CITY_CONTACT"
    PLUMBER = "PLUMBER"
    ELECTRICIAN = "ELECTRICIAN"
    VIEWER = "VIEWER"


# -----------------------------------------------------
# PROPERTIES & JURISDICTIONS
# -----------------------------------------------------
class PropertyType(BaseStrEnum):
    RESIDENTIAL = "RESIDENTIAL"
    COMMERCIAL = "COMMERCIAL"
    MIXED_USE = "MIXED_USE"
    INDUSTRIAL = "INDUSTRIAL"


class JurisdictionType(BaseStrEnum):
    STATE = "STATE"
    COUNTY = "COUNTY"
    CITY = "CITY"
    TOWNSHIP = "TOWNSHIP"
    VILLAGE = "VILLAGE"
    BOROUGH = "BOROUGH"
    TOWN = "TOWN"
    DISTRICT = "DISTRICT"


# -----------------------------------------------------
# TASKS
# -----------------------------------------------------
class TaskStatus(BaseStrEnum):
    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    BLOCKED = "BLOCKED"
    COMPLETED = "COMPLETED"


# -----------------------------------------------------
# FORMS
# -----------------------------------------------------
class FormFieldType(BaseStrEnum):
    TEXT = "TEXT"
    TEXTAREA = "TEXTAREA"
    NUMBER = "NUMBER"
    EMAIL = "EMAIL"
    PHONE = "PHONE"
    DATE = "DATE"
    SELECT = "SELECT"
    MULTI_SELECT = "MULTI_SELECT"
    CHECKBOX = "CHECKBOX"
    RADIO = "RADIO"
    FILE = "FILE"
    ADDRESS = "ADDRESS"
    SIGNATURE = "SIGNATURE"


class FormSubmissionStatus(BaseStrEnum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


# -----------------------------------------------------
# DOCUMENTS
# -----------------------------------------------------
class DocumentCategory(BaseStrEnum):
    APPLICATION = "APPLICATION"
    PLANS = "PLANS"
    SURVEY = "SURVEY"
    CORRESPONDENCE = "CORRESPONDENCE"
    INSPECTION_REPORT = "INSPECTION_REPORT"
    CERTIFICATE = "CERTIFICATE"
    PERMIT = "PERMIT"
    OTHER = "OTHER"


# -----------------------------------------------------
# NOTIFICATIONS
# -----------------------------------------------------
class NotificationType(BaseStrEnum):
    STATUS_CHANGED = "STATUS_CHANGED"
    PARTY_ADDED = "PARTY_ADDED"
    PARTY_REMOVED = "PARTY_REMOVED"
    DOCUMENT_UPLOADED = "DOCUMENT_UPLOADED"
    PHOTO_SHARED = "PHOTO_SHARED"
    INSPECTION_SCHEDULED = "INSPECTION_SCHEDULED"
    INSPECTION_COMPLETED = "INSPECTION_COMPLETED"
    MILESTONE_COMPLETED = "MILESTONE_COMPLETED"
    MILESTONE_DUE = "MILESTONE_DUE"
    NEW_MESSAGE = "NEW_MESSAGE"
    TASK_ASSIGNED = "TASK_ASSIGNED"
    TASK_COMPLETED = "TASK_COMPLETED"


class PushPlatform(BaseStrEnum):
    IOS = "IOS"
    ANDROID = "ANDROID"
    WEB = "WEB"


class ActivityAction(BaseStrEnum):
    CREATED = "CREATED"
    UPDATED = "UPDATED"
    DELETED = "DELETED"
    STATUS_CHANGED = "STATUS_CHANGED"
    DOCUMENT_UPLOADED = "DOCUMENT_UPLOADED"
    PHOTO_UPLOADED = "PHOTO_UPLOADED"
    PHOTO_SHARED = "PHOTO_SHARED"
    PARTY_ADDED = "PARTY_ADDED"
    PARTY_REMOVED = "PARTY_REMOVED"
    MILESTONE_COMPLETED = "MILESTONE_COMPLETED"
    INSPECTION_SCHEDULED = "INSPECTION_SCHEDULED"
    INSPECTION_COMPLETED = "INSPECTION_COMPLETED"
    TASK_ASSIGNED = "TASK_ASSIGNED"
    TASK_COMPLETED = "TASK_COMPLETED"


# -----------------------------------------------------
# VENDORS
# -----------------------------------------------------
class VendorSpecialty(BaseStrEnum):
    GENERAL_CONTRACTING = "GENERAL_CONTRACTING"
    PLUMBING = "PLUMBING"
    ELECTRICAL = "ELECTRICAL"
    HVAC = "HVAC"
    FIRE_PROTECTION = "FIRE_PROTECTION"
    ROOFING = "ROOFING"
    MASONRY = "MASONRY"
    CARPENTRY = "CARPENTRY"
    PAINTING = "PAINTING"
    DEMOLITION = "DEMOLITION"
    EXCAVATION = "EXCAVATION"
    LANDSCAPING = "LANDSCAPING"
    ARCHITECTURE = "ARCHITECTURE"
    ENGINEERING = "ENGINEERING"
    SURVEYING = "SURVEYING"


class InsuranceType(BaseStrEnum):
    GENERAL_LIABILITY = "GENERAL_LIABILITY"
    WORKERS_COMP = "WORKERS_COMP"
    PROFESSIONAL_LIABILITY = "PROFESSIONAL_LIABILITY"


class TransactionStatus(BaseStrEnum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


# -----------------------------------------------------
# SUBSCRIPTIONS
# -----------------------------------------------------
class SubscriptionPlan(BaseStrEnum):
    FREE = "FREE"
    ANNUAL = "ANNUAL"
    ENTERPRISE = "ENTERPRISE"


class SubscriptionStatus(BaseStrEnum):
    ACTIVE = "ACTIVE"
    PAST_DUE = "PAST_DUE"
    CANCELLED = "CANCELLED"
    TRIALING = "TRIALING"
