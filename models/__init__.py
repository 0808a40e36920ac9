# -------------------------
# Property / Jurisdiction Models
# -------------------------
from .property import (
    PropertyBase,
    PropertyCreate,
    PropertyUpdate,
)
from .jurisdiction import (
    JurisdictionBase,
    JurisdictionCreate,
    JurisdictionUpdate,
)

# -------------------------
# Permit Models
# -------------------------
from .permit import (
    PermitBase,
    PermitCreate,
    PermitUpdate,
    PermitStatusUpdate,
    MilestoneCreate,
    MilestoneUpdate,
    InspectionCreate,
    InspectionUpdate,
)
from .party import (
    ContactInput,
    PartyCreate,
    PartyUpdate,
)

# -------------------------
# Tasks & Workflows
# -------------------------
from .task import (
    TaskCreate,
    TaskUpdate,
    ChecklistItemCreate,
    ChecklistItemUpdate,
    WorkflowStep,
    WorkflowTemplateCreate,
    WorkflowTemplateUpdate,
    ApplyWorkflow,
)

# -------------------------
# Forms
# -------------------------
from .form import (
    FormSchema,
    FormSection,
    FormFieldDef,
    FormTemplateCreate,
    FormTemplateUpdate,
    FormSubmissionCreate,
    FormSubmissionUpdate,
)

# -------------------------
# Documents, Photos, Messages
# -------------------------
from .document import (
    DocumentCreate,
    PhotoCreate,
    PhotoShare,
    PhotoShareRecipient,
    PermitMessageCreate,
)

# -------------------------
# Notifications & Profile
# -------------------------
from .notification import (
    NotificationUpdate,
    PushTokenRegister,
    PushTokenRemove,
    UserProfileUpdate,
)

# -------------------------
# Vendors
# -------------------------
from .vendor import (
    VendorProfileCreate,
    VendorProfileUpdate,
    VendorReviewCreate,
    VendorLicenseCreate,
    VendorInsuranceCreate,
    VendorPaymentCreate,
)

# -------------------------
# Chat
# -------------------------
from .chat import (
    ConversationCreate,
    ConversationUpdate,
    ChatMessageCreate,
    KnowledgeDocumentCreate,
)
