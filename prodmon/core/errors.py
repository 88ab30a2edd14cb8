"""
Dashboard exceptions
"""


class DashboardError(Exception):
    """Base class for dashboard errors"""

    status_code = 500


class AuthenticationRequired(DashboardError):
    """No identity token is available for the caller"""

    status_code = 401

    def __init__(self, message: str = "Login required (no idToken)"):
        super().__init__(message)


class PermissionDenied(DashboardError):
    """Caller is not a member of the admin group"""

    status_code = 403

    def __init__(self, message: str = "Admin access only"):
        super().__init__(message)


class AppSyncError(DashboardError):
    """GraphQL errors or transport failure talking to AppSync"""

    status_code = 502


class ManifestError(DashboardError):
    """Firmware manifest could not be loaded"""

    status_code = 502


class RegistrationError(DashboardError):
    """Device registration was rejected; message is user-facing"""

    status_code = 400


class DeviceNotFound(DashboardError):
    """Device is not in the caller's device list"""

    status_code = 404


class InvalidRequest(DashboardError):
    """Malformed tab, date or period"""

    status_code = 400
