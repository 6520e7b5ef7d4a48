"""
Tabla de permisos por rol.

Cada membresía de organización tiene un rol; el rol determina un conjunto fijo
de permisos. La tabla es inmutable y se consulta por clave, sin herencia.
"""
import enum
from types import MappingProxyType
from typing import Iterable, Optional


class Role(str, enum.Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"


class Permission(str, enum.Enum):
    VIEW_DASHBOARD = "view_dashboard"
    MANAGE_CLIENTS = "manage_clients"
    MANAGE_PRODUCTS = "manage_products"
    MANAGE_INVOICES = "manage_invoices"
    MANAGE_QUOTES = "manage_quotes"
    MANAGE_EXPENSES = "manage_expenses"
    MANAGE_PAYMENTS = "manage_payments"
    MANAGE_SETTINGS = "manage_settings"
    MANAGE_ORGANIZATION = "manage_organization"
    MANAGE_MEMBERS = "manage_members"
    INVITE_MEMBERS = "invite_members"
    VIEW_REPORTS = "view_reports"
    MANAGE_FISCAL_DOCUMENTS = "manage_fiscal_documents"


_MEMBER_PERMISSIONS = frozenset({
    Permission.VIEW_DASHBOARD,
    Permission.MANAGE_CLIENTS,
    Permission.MANAGE_PRODUCTS,
    Permission.MANAGE_INVOICES,
    Permission.MANAGE_QUOTES,
    Permission.MANAGE_EXPENSES,
    Permission.MANAGE_PAYMENTS,
    Permission.VIEW_REPORTS,
})

_ADMIN_PERMISSIONS = _MEMBER_PERMISSIONS | {
    Permission.MANAGE_SETTINGS,
    Permission.INVITE_MEMBERS,
    Permission.MANAGE_FISCAL_DOCUMENTS,
}

ROLE_PERMISSIONS = MappingProxyType({
    Role.OWNER: frozenset(Permission),
    Role.ADMIN: _ADMIN_PERMISSIONS,
    Role.MEMBER: _MEMBER_PERMISSIONS,
})

ROLE_DISPLAY_NAMES = MappingProxyType({
    Role.OWNER: "Propietario",
    Role.ADMIN: "Administrador",
    Role.MEMBER: "Miembro",
})


def parse_role(value) -> Optional[Role]:
    """Convierte el rol guardado (string) al enum; None si no es un rol conocido."""
    if isinstance(value, Role):
        return value
    try:
        return Role(value)
    except ValueError:
        return None


def get_permissions(role) -> frozenset:
    parsed = parse_role(role)
    if parsed is None:
        return frozenset()
    return ROLE_PERMISSIONS[parsed]


def has_permission(role, permission: Permission) -> bool:
    return permission in get_permissions(role)


def has_any_permission(role, permissions: Iterable[Permission]) -> bool:
    return any(has_permission(role, p) for p in permissions)


def has_all_permissions(role, permissions: Iterable[Permission]) -> bool:
    return all(has_permission(role, p) for p in permissions)


def can_manage_member(actor_role, target_role) -> bool:
    """
    Owner gestiona a cualquiera; admin solo a miembros; member a nadie.
    """
    actor = parse_role(actor_role)
    target = parse_role(target_role)
    if actor is None or target is None:
        return False
    if actor == Role.OWNER:
        return True
    if actor == Role.ADMIN:
        return target == Role.MEMBER
    return False
