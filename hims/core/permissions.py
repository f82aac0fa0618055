from typing import List, Dict, Any, Callable
from fastapi import Request

from hims.core.exceptions import AuthenticationError, AuthorizationError
from hims.core.security import verify_token


class Permissions:
    """Permission constants for the hospital information system"""

    # User management
    USERS_READ = "users:read"
    USERS_WRITE = "users:write"

    # Patient registry
    PATIENTS_READ = "patients:read"
    PATIENTS_WRITE = "patients:write"

    # Appointments
    APPOINTMENTS_READ = "appointments:read"
    APPOINTMENTS_WRITE = "appointments:write"

    # Outpatient visits and doctor queue
    VISITS_READ = "visits:read"
    VISITS_WRITE = "visits:write"

    # Laboratory and radiology
    DIAGNOSTICS_READ = "diagnostics:read"
    DIAGNOSTICS_WRITE = "diagnostics:write"

    # Service catalog
    SERVICES_READ = "services:read"
    SERVICES_WRITE = "services:write"

    # Billing
    BILLING_READ = "billing:read"
    BILLING_WRITE = "billing:write"

    # Pharmacy stock and dispensing
    PHARMACY_READ = "pharmacy:read"
    PHARMACY_WRITE = "pharmacy:write"

    # Store requisitions and item receiving
    STORE_READ = "store:read"
    STORE_WRITE = "store:write"

    # Mortuary
    MORTUARY_READ = "mortuary:read"
    MORTUARY_WRITE = "mortuary:write"

    # Wards, beds and theatres
    WARDS_READ = "wards:read"
    WARDS_WRITE = "wards:write"
    THEATRES_READ = "theatres:read"
    THEATRES_WRITE = "theatres:write"

    # In-patient admissions
    IPD_READ = "ipd:read"
    IPD_WRITE = "ipd:write"

    # Reports and dashboard
    REPORTS_READ = "reports:read"

    # System
    SYSTEM_ADMIN = "system:admin"


P = Permissions

ROLE_PERMISSIONS: Dict[str, List[str]] = {
    "admin": [P.SYSTEM_ADMIN],
    "doctor": [
        P.PATIENTS_READ, P.PATIENTS_WRITE,
        P.APPOINTMENTS_READ, P.APPOINTMENTS_WRITE,
        P.VISITS_READ, P.VISITS_WRITE,
        P.DIAGNOSTICS_READ, P.DIAGNOSTICS_WRITE,
        P.SERVICES_READ,
        P.PHARMACY_READ,
        P.WARDS_READ,
        P.THEATRES_READ, P.THEATRES_WRITE,
        P.IPD_READ, P.IPD_WRITE,
        P.REPORTS_READ,
    ],
    "nurse": [
        P.PATIENTS_READ,
        P.APPOINTMENTS_READ,
        P.VISITS_READ, P.VISITS_WRITE,
        P.DIAGNOSTICS_READ,
        P.SERVICES_READ,
        P.PHARMACY_READ,
        P.WARDS_READ, P.WARDS_WRITE,
        P.THEATRES_READ, P.THEATRES_WRITE,
        P.IPD_READ, P.IPD_WRITE,
    ],
    "receptionist": [
        P.PATIENTS_READ, P.PATIENTS_WRITE,
        P.APPOINTMENTS_READ, P.APPOINTMENTS_WRITE,
        P.VISITS_READ, P.VISITS_WRITE,
        P.SERVICES_READ,
        P.WARDS_READ,
    ],
    "pharmacist": [
        P.PATIENTS_READ,
        P.VISITS_READ,
        P.SERVICES_READ,
        P.PHARMACY_READ, P.PHARMACY_WRITE,
        P.STORE_READ, P.STORE_WRITE,
        P.REPORTS_READ,
    ],
    "cashier": [
        P.PATIENTS_READ,
        P.VISITS_READ, P.VISITS_WRITE,
        P.SERVICES_READ,
        P.PHARMACY_READ,
        P.BILLING_READ, P.BILLING_WRITE,
        P.REPORTS_READ,
    ],
    "lab_technician": [
        P.PATIENTS_READ,
        P.VISITS_READ,
        P.DIAGNOSTICS_READ, P.DIAGNOSTICS_WRITE,
        P.SERVICES_READ,
    ],
    "radiologist": [
        P.PATIENTS_READ,
        P.VISITS_READ,
        P.DIAGNOSTICS_READ, P.DIAGNOSTICS_WRITE,
        P.SERVICES_READ,
    ],
    "mortuary_attendant": [
        P.PATIENTS_READ,
        P.MORTUARY_READ, P.MORTUARY_WRITE,
    ],
    "store_keeper": [
        P.PHARMACY_READ, P.PHARMACY_WRITE,
        P.STORE_READ, P.STORE_WRITE,
        P.REPORTS_READ,
    ],
}


def permissions_for_role(role: str) -> List[str]:
    return list(ROLE_PERMISSIONS.get(role, []))


def get_current_user(request: Request) -> Dict[str, Any]:
    """Extract and validate user from request"""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise AuthenticationError("Authentication required")

    token = auth_header.split(" ", 1)[1]
    payload = verify_token(token, "access")

    if not payload:
        raise AuthenticationError("Invalid or expired token")

    request.state.user = payload
    return payload


def has_any_permission(user_payload: Dict[str, Any], required_permissions: List[str]) -> bool:
    user_permissions = user_payload.get("permissions", [])
    if Permissions.SYSTEM_ADMIN in user_permissions:
        return True
    return any(perm in user_permissions for perm in required_permissions)


def require_permissions(*required_permissions: str) -> Callable[[Request], Dict[str, Any]]:
    """Dependency factory: the caller needs at least one of the listed permissions"""
    def permission_checker(request: Request) -> Dict[str, Any]:
        user_payload = get_current_user(request)

        if required_permissions and not has_any_permission(user_payload, list(required_permissions)):
            raise AuthorizationError("Insufficient permissions")

        return user_payload

    return permission_checker
