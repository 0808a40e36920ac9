# ============================================
# PERMIT PARTY ROLE → PERMISSIONS MAP
# ============================================
# Access to a permit is decided per permit: the creator acts as OWNER,
# everyone else gets the role of their party row on that permit.

READ = "read"
EDIT = "edit"
DELETE = "delete"
MANAGE_PARTIES = "manage_parties"
UPLOAD_DOCUMENTS = "upload_documents"
MANAGE_INSPECTIONS = "manage_inspections"
SEND_MESSAGES = "send_messages"
ASSIGN_TASKS = "assign_tasks"
COMPLETE_TASKS = "complete_tasks"

ALL_PERMISSIONS = [
    READ,
    EDIT,
    DELETE,
    MANAGE_PARTIES,
    UPLOAD_DOCUMENTS,
    MANAGE_INSPECTIONS,
    SEND_MESSAGES,
    ASSIGN_TASKS,
    COMPLETE_TASKS,
]

_TRADE = [READ, UPLOAD_DOCUMENTS, SEND_MESSAGES, COMPLETE_TASKS]

ROLE_PERMISSIONS = {

    # =====================================================
    # OWNER: permit creator or designated owner
    # =====================================================
    "OWNER": list(ALL_PERMISSIONS),

    # =====================================================
    # EXPEDITOR: runs the permit, cannot delete it
    # =====================================================
    "EXPEDITOR": [p for p in ALL_PERMISSIONS if p != DELETE],

    # =====================================================
    # TRADES & DESIGN PROFESSIONALS
    # =====================================================
    "CONTRACTOR": list(_TRADE),
    "ARCHITECT": list(_TRADE),
    "ENGINEER": list(_TRADE),
    "PLUMBER": list(_TRADE),
    "ELECTRICIAN": list(_TRADE),
    "CITY_CONTACT": list(_TRADE),

    # =====================================================
    # INSPECTOR
    # =====================================================
    "INSPECTOR": [READ, MANAGE_INSPECTIONS, SEND_MESSAGES, COMPLETE_TASKS],

    # =====================================================
    # VIEWER: read only
    # =====================================================
    "VIEWER": [READ],
}

# Roles that may delete any task on a permit
TASK_ADMIN_ROLES = ("OWNER", "EXPEDITOR")
