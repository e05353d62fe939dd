"""
Module/action permission resolution.

Two kinds of permission documents exist.  A :class:`ClinicPermission`
says what a clinic (per portal role) was granted by an admin; an
:class:`AgentPermission` narrows that down for one agent account.  Both
hold the same list-of-modules shape, and action flags may arrive as
booleans or as the strings ``"true"``/``"false"`` depending on which
portal saved them.

Clinic documents are permissive: an unconfigured clinic or a module the
document does not mention is allowed.  Agent documents are strict: a
missing document or module is a denial.
"""
from __future__ import annotations

import logging
import re
from typing import Iterable, NamedTuple, Optional

from crm.models import AgentPermission, Clinic, ClinicPermission, User
from crm.services.tenancy import AGENT_ROLES, TenancyError, resolve_clinic

logger = logging.getLogger(__name__)

ACTIONS = ('all', 'create', 'read', 'update', 'delete', 'approve', 'print', 'export')
CRUD_ACTIONS = ('create', 'read', 'update', 'delete')

CLINIC_PREFIXES = ('admin', 'clinic', 'doctor', 'agent')
AGENT_PREFIXES = ('admin', 'clinic', 'doctor')

METHOD_ACTIONS = {
    'GET': 'read',
    'HEAD': 'read',
    'OPTIONS': 'read',
    'POST': 'create',
    'PUT': 'update',
    'PATCH': 'update',
    'DELETE': 'delete',
}


class PermissionResult(NamedTuple):
    allowed: bool
    error: Optional[str] = None


ALLOW = PermissionResult(True)


def deny(message: str) -> PermissionResult:
    return PermissionResult(False, message)


def is_granted(flag) -> bool:
    """True for ``True`` or any spelling of the string ``"true"``."""
    if flag is True:
        return True
    if isinstance(flag, str):
        return flag.strip().lower() == 'true'
    return False


def strip_role_prefix(key: str, prefixes: Iterable[str] = CLINIC_PREFIXES) -> str:
    pattern = r'^(%s)_' % '|'.join(prefixes)
    return re.sub(pattern, '', key or '', count=1)


def module_candidates(key: str, prefixes: Iterable[str] = CLINIC_PREFIXES) -> list[str]:
    """``key`` plus its variants with the role prefix removed or added."""
    prefixes = tuple(prefixes)
    base = strip_role_prefix(key, prefixes)
    out: list[str] = []
    for candidate in [key, base, *(f'{p}_{base}' for p in prefixes)]:
        if candidate and candidate not in out:
            out.append(candidate)
    return out


def find_module(permissions, key: str, prefixes: Iterable[str] = CLINIC_PREFIXES) -> Optional[dict]:
    prefixes = tuple(prefixes)
    candidates = module_candidates(key, prefixes)
    base = strip_role_prefix(key, prefixes)
    for entry in permissions or []:
        if not isinstance(entry, dict):
            continue
        name = entry.get('module') or ''
        if name in candidates or strip_role_prefix(name, prefixes) == base:
            return entry
    return None


def find_submodule(entry: dict, name: str) -> Optional[dict]:
    wanted = (name or '').strip().lower()
    for sub in entry.get('subModules') or []:
        if isinstance(sub, dict) and (sub.get('name') or '').strip().lower() == wanted:
            return sub
    return None


def _actions(node: Optional[dict]) -> dict:
    actions = (node or {}).get('actions')
    return actions if isinstance(actions, dict) else {}


def _grants(actions: dict, action: str) -> bool:
    return is_granted(actions.get('all')) or is_granted(actions.get(action))


def has_any_action(actions: dict) -> bool:
    return any(is_granted(actions.get(a)) for a in ACTIONS)


# ---------------------------------------------------------------------------
# Clinic documents
# ---------------------------------------------------------------------------

def clinic_permission_doc(clinic: Clinic, role: Optional[str] = None) -> tuple[Optional[ClinicPermission], bool]:
    """Return ``(document, configured)`` for ``clinic`` and ``role``.

    Roles other than ``clinic`` fall back to the clinic-role document.
    ``configured`` tells whether the clinic has any active document at
    all, which separates "never configured" from "not granted".
    """
    active = ClinicPermission.objects.filter(clinic=clinic, is_active=True)
    target = role or 'clinic'
    doc = active.filter(role=target).first()
    if doc is None and target != 'clinic':
        doc = active.filter(role='clinic').first()
    configured = doc is not None or active.exists()
    return doc, configured


def check_clinic_permission(clinic: Optional[Clinic], module_key: str, action: str,
                            submodule: Optional[str] = None, role: Optional[str] = None) -> PermissionResult:
    if clinic is None:
        return ALLOW

    doc, configured = clinic_permission_doc(clinic, role)
    if doc is None:
        if not configured:
            return ALLOW
        return deny(f'No permissions found for {role or "clinic"} role')

    entry = find_module(doc.permissions, module_key)
    if entry is None:
        return ALLOW

    actions = _actions(entry)
    if is_granted(actions.get('all')):
        return ALLOW

    if submodule:
        if is_granted(actions.get(action)):
            return ALLOW
        sub = find_submodule(entry, submodule)
        if sub is None:
            return deny(f'Permission denied: submodule {submodule} not found in module {module_key}')
        sub_actions = _actions(sub)
        if not has_any_action(sub_actions):
            return ALLOW
        if _grants(sub_actions, action):
            return ALLOW
        return deny(f'Permission denied: {action} action not allowed for submodule {submodule}')

    if is_granted(actions.get(action)):
        return ALLOW
    for sub in entry.get('subModules') or []:
        if isinstance(sub, dict) and _grants(_actions(sub), action):
            return ALLOW
    return deny(f'Permission denied: {action} action not allowed for module {module_key}')


# ---------------------------------------------------------------------------
# Agent documents
# ---------------------------------------------------------------------------

def agent_permission_doc(agent: User) -> Optional[AgentPermission]:
    return AgentPermission.objects.filter(agent=agent, is_active=True).first()


def check_agent_permission(agent: User, module_key: str, action: str,
                           submodule: Optional[str] = None) -> PermissionResult:
    doc = agent_permission_doc(agent)
    if doc is None or not doc.permissions:
        return deny('No permissions found for this agent')

    entry = find_module(doc.permissions, module_key, AGENT_PREFIXES)
    if entry is None:
        return deny(f'Permission denied: module {module_key} not granted to this agent')

    actions = _actions(entry)
    if is_granted(actions.get('all')):
        return ALLOW

    if submodule:
        if is_granted(actions.get(action)):
            return ALLOW
        sub = find_submodule(entry, submodule)
        if sub is None:
            return deny(f'Permission denied: submodule {submodule} not granted to this agent')
        if _grants(_actions(sub), action):
            return ALLOW
        return deny(f'Permission denied: {action} action not allowed for submodule {submodule}')

    if is_granted(actions.get(action)):
        return ALLOW
    return deny(f'Permission denied: {action} action not allowed for module {module_key}')


# ---------------------------------------------------------------------------
# Merged gate used by the views
# ---------------------------------------------------------------------------

def clinic_role_for(user: User) -> str:
    return 'doctor' if user.role == 'doctor' else 'clinic'


def check_user_permission(user: User, module_key: str, action: str,
                          submodule: Optional[str] = None, clinic: Optional[Clinic] = None) -> PermissionResult:
    """Gate an operation for ``user``.

    Admins bypass everything.  Everyone else must pass their clinic's
    document; agents and doctorStaff must additionally pass their own.
    """
    if user.role == 'admin':
        return ALLOW
    if clinic is None:
        try:
            clinic = resolve_clinic(user)
        except TenancyError as e:
            return deny(str(e))

    result = check_clinic_permission(clinic, module_key, action, submodule, role=clinic_role_for(user))
    if result.allowed and user.role in AGENT_ROLES:
        result = check_agent_permission(user, module_key, action, submodule)
    if not result.allowed:
        logger.warning("permission denied user=%s module=%s action=%s sub=%s: %s",
                       user.id, module_key, action, submodule, result.error)
    return result


def effective_actions(permissions, module_key: str, submodule: Optional[str] = None) -> dict:
    """CRUD flags a document grants for ``module_key`` (and ``submodule``)."""
    entry = find_module(permissions, module_key)
    if entry is None:
        return {a: False for a in CRUD_ACTIONS}
    actions = _actions(entry)
    if is_granted(actions.get('all')):
        return {a: True for a in CRUD_ACTIONS}
    if submodule:
        sub = find_submodule(entry, submodule)
        if sub is not None:
            sub_actions = _actions(sub)
            if is_granted(sub_actions.get('all')):
                return {a: True for a in CRUD_ACTIONS}
            return {a: is_granted(sub_actions.get(a)) for a in CRUD_ACTIONS}
    return {a: is_granted(actions.get(a)) for a in CRUD_ACTIONS}


def validate_permission_entries(entries) -> list[dict]:
    """Validate a submitted permission list; raise ``ValueError`` if malformed."""
    if not isinstance(entries, list):
        raise ValueError('permissions must be an array')
    cleaned = []
    for i, entry in enumerate(entries):
        if not isinstance(entry, dict) or not entry.get('module'):
            raise ValueError(f'Permission at index {i} is missing module')
        actions = entry.get('actions')
        if not isinstance(actions, dict):
            raise ValueError(f'Permission at index {i} must have an actions object')
        subs = entry.get('subModules', [])
        if subs is None:
            subs = []
        if not isinstance(subs, list):
            raise ValueError(f'subModules at index {i} must be an array')
        clean_subs = []
        for sub in subs:
            if not isinstance(sub, dict) or not sub.get('name'):
                raise ValueError(f'subModules at index {i} need a name')
            clean_subs.append({
                'name': str(sub['name']),
                'path': sub.get('path') or '',
                'icon': sub.get('icon') or '',
                'order': sub.get('order') or 0,
                'actions': {a: is_granted(v) for a, v in _actions(sub).items() if a in ACTIONS},
            })
        cleaned.append({
            'module': str(entry['module']),
            'actions': {a: is_granted(v) for a, v in actions.items() if a in ACTIONS},
            'subModules': clean_subs,
        })
    return cleaned
