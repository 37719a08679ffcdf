"""Sheet catalogue for the tabular store.

Each sheet is a named table with an ordered header list. Header order only
matters for physical storage.
"""

SYSTEM_ACTOR = "SYSTEM"

USERS = "SYS_Users"
ROLES = "SYS_Roles"
PERMISSIONS = "SYS_Permissions"
ROLE_PERMISSIONS = "SYS_Role_Permissions"
SESSIONS = "SYS_Sessions"
AUDIT_LOG = "SYS_Audit_Log"
AUDIT_REPORT = "SYS_Audit_Report"
USER_PROPERTIES = "SYS_User_Properties"
SEQUENCES = "SYS_Sequences"

_STAMPS = ("Created_At", "Created_By", "Updated_At", "Updated_By")

SHEET_HEADERS: dict[str, tuple[str, ...]] = {
    USERS: (
        "User_Id",
        "Full_Name",
        "Username",
        "Email",
        "Job_Title",
        "Department",
        "Role_Id",
        "IsActive",
        "Disabled_At",
        "Disabled_By",
        "Password_Hash",
        "Last_Login",
        "Created_At",
        "Created_By",
        "Updated_At",
        "Updated_By",
        "External_Id",
        "MFA_Enabled",
        "Notes",
    ),
    ROLES: ("Role_Id", "Role_Title", "Description", "Is_System") + _STAMPS,
    PERMISSIONS: ("Permission_Key", "Permission_Label", "Description", "Category") + _STAMPS,
    ROLE_PERMISSIONS: (
        "Grant_Id",
        "Role_Id",
        "Permission_Key",
        "Scope",
        "Allowed",
        "Constraints",
    )
    + _STAMPS,
    SESSIONS: (
        "Session_Id",
        "User_Id",
        "Device",
        "Ip_Address",
        "Auth_Token",
        "Created_At",
        "Last_Seen",
        "Revoked_At",
        "Revoked_By",
        "Impersonated_By",
        "Expires_At",
    ),
    AUDIT_LOG: (
        "Audit_Id",
        "User_Id",
        "Sheet",
        "Action",
        "Target_Id",
        "Details",
        "Created_At",
        "Previous_Hash",
        "Checksum",
    ),
    AUDIT_REPORT: (
        "Audit_Id",
        "Entity",
        "Entity_Id",
        "Action",
        "Actor_Id",
        "Summary",
        "Details",
        "Scope",
        "Created_At",
        "Previous_Hash",
        "Checksum",
    ),
    USER_PROPERTIES: ("Property_Id", "User_Id", "Property_Key", "Property_Value") + _STAMPS,
    SEQUENCES: ("Sequence_Key", "Last_Value", "Updated_At"),
}

# Id prefixes for generated identifiers
USER_ID_PREFIX = "USR"
SESSION_ID_PREFIX = "SES"
AUDIT_ID_PREFIX = "AUD"
AUDIT_REPORT_ID_PREFIX = "AUDR"

TRUE_VALUES = frozenset({"true", "1", "yes", "y"})


def to_boolean(value: object) -> bool:
    """Interpret a stored cell as a boolean.

    Accepts true/1/yes/y in any case; everything else is False.
    """
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in TRUE_VALUES


def to_cell(value: object) -> str:
    """Convert a Python value to the text stored in a cell."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    return str(value)


def blank_to_none(value: object) -> str | None:
    """Return None for empty cells, the text otherwise."""
    if value is None:
        return None
    text = str(value)
    return text if text != "" else None
