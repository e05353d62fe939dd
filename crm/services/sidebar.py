"""
Sidebar composition for the clinic and staff (agent) portals.

Navigation items are stored per portal role.  Agents see the items of
the portal their creator works in, rewritten to ``/staff/<slug>`` routes
that :mod:`crm.services.staff_routes` knows how to load.
"""
from __future__ import annotations

import re
from typing import Callable, Optional

from django.conf import settings
from django.core.cache import cache

from crm.models import NavigationItem, User
from crm.services.permissions import (
    ACTIONS,
    AGENT_PREFIXES,
    agent_permission_doc,
    clinic_permission_doc,
    clinic_role_for,
    is_granted,
    strip_role_prefix,
)
from crm.services.tenancy import AGENT_ROLES, navigation_role, resolve_clinic


def _slugify_segments(rest: str) -> str:
    slug = '-'.join(part for part in rest.split('/') if part)
    return re.sub(r'-{2,}', '-', slug)


def convert_path_to_staff(path: str) -> str:
    """Map a portal path onto the staff route that renders it.

    ``/clinic/leads/create`` becomes ``/staff/clinic-leads-create`` and
    ``/doctor/rooms`` becomes ``/staff/doctor-rooms``.  Paths already under
    ``/staff`` are kept; other portal prefixes are dropped.
    """
    if not path:
        return ''
    clean = path.strip().lstrip('/')
    if clean.startswith('staff/') or clean == 'staff':
        return '/' + clean
    if clean.startswith('clinic/'):
        return '/staff/clinic-' + _slugify_segments(clean[len('clinic/'):])
    if clean.startswith('doctor/'):
        return '/staff/doctor-' + _slugify_segments(clean[len('doctor/'):])
    for prefix in ('agent/', 'admin/'):
        if clean.startswith(prefix):
            return '/staff/' + _slugify_segments(clean[len(prefix):])
    return '/staff/' + _slugify_segments(clean)


def transform_clinic_path(path: str) -> str:
    """Staff pages opened from the clinic portal live under ``/clinic/staff``."""
    if path and (path.startswith('/staff/') or path == '/staff'):
        return '/clinic' + path
    return path


def _serialize_item(item: NavigationItem, path: str, sub_modules: list, permissions: Optional[dict] = None) -> dict:
    data = {
        'id': item.id,
        'label': item.label,
        'path': path,
        'icon': item.icon,
        'description': item.description,
        'order': item.order,
        'moduleKey': item.module_key,
        'subModules': sub_modules,
    }
    if permissions is not None:
        data['permissions'] = permissions
    return data


def _items(role: str):
    return NavigationItem.objects.filter(role=role, is_active=True).order_by('order', 'id')


def _sub_path(sub: dict, convert) -> str:
    return convert(sub.get('path') or '') if sub.get('path') else ''


# ---------------------------------------------------------------------------
# Staff / agent sidebar
# ---------------------------------------------------------------------------

def build_permission_map(permissions, nav_role: str) -> dict[str, dict]:
    """Index agent permission entries by every key a nav item may use."""
    out: dict[str, dict] = {}
    for entry in permissions or []:
        if not isinstance(entry, dict):
            continue
        raw = entry.get('module') or ''
        stripped = strip_role_prefix(raw, AGENT_PREFIXES + ('agent',))
        for key in (raw, stripped, f'{nav_role}_{stripped}'):
            out.setdefault(key, entry)
    return out


def _lookup(perm_map: dict, module_key: str, nav_role: str) -> Optional[dict]:
    stripped = strip_role_prefix(module_key, AGENT_PREFIXES + ('agent',))
    for key in (module_key, stripped, f'{nav_role}_{stripped}'):
        if key in perm_map:
            return perm_map[key]
    return None


def _sub_actions_map(entry: dict) -> dict[str, dict]:
    return {
        (s.get('name') or '').strip().lower(): (s.get('actions') or {})
        for s in entry.get('subModules') or [] if isinstance(s, dict)
    }


def agent_sidebar(user: User) -> dict:
    """Sidebar for the staff portal.

    Clinic, doctor and admin callers get every item of their own portal;
    agents get the items of their navigation role that their permission
    document grants.  Raises ``PermissionError`` for other roles.
    """
    role = user.role
    if role in ('clinic', 'doctor', 'admin'):
        items = [
            _serialize_item(
                item,
                convert_path_to_staff(item.path),
                [{**s, 'path': _sub_path(s, convert_path_to_staff)} for s in item.sub_modules or []],
            )
            for item in _items(role)
        ]
        return {'navigationRole': role, 'items': items}

    if role not in AGENT_ROLES:
        raise PermissionError('Access denied')

    nav_role = navigation_role(user)
    doc = agent_permission_doc(user)
    if doc is None or not doc.permissions:
        return {'navigationRole': nav_role, 'items': []}

    perm_map = build_permission_map(doc.permissions, nav_role)
    items = []
    for item in _items(nav_role):
        entry = _lookup(perm_map, item.module_key, nav_role)
        if entry is None:
            continue
        actions = entry.get('actions') or {}
        sub_actions = _sub_actions_map(entry)
        module_all = is_granted(actions.get('all'))
        module_any = any(is_granted(actions.get(a)) for a in ACTIONS)
        sub_any = any(
            any(is_granted(acts.get(a)) for a in ACTIONS) for acts in sub_actions.values()
        )
        if not (module_any or sub_any):
            continue

        subs = []
        for sub in item.sub_modules or []:
            acts = sub_actions.get((sub.get('name') or '').strip().lower(), {})
            granted = {a: is_granted(acts.get(a)) for a in ACTIONS}
            if module_all or any(granted.values()):
                subs.append({
                    **sub,
                    'path': _sub_path(sub, convert_path_to_staff),
                    'permissions': {a: True for a in ACTIONS} if module_all else granted,
                })
        items.append(_serialize_item(
            item,
            convert_path_to_staff(item.path),
            subs,
            permissions={a: is_granted(actions.get(a)) for a in ACTIONS},
        ))
    return {'navigationRole': nav_role, 'items': items}


# ---------------------------------------------------------------------------
# Clinic portal sidebar
# ---------------------------------------------------------------------------

def clinic_sidebar(user: User) -> dict:
    """Sidebar for the clinic portal, filtered by the clinic's document.

    Raises ``PermissionError`` when the clinic is not approved yet or was
    declined; tenancy errors propagate from :func:`resolve_clinic`.
    """
    if user.role not in ('clinic', 'agent', 'doctor', 'doctorStaff'):
        raise PermissionError('Access denied')
    clinic = resolve_clinic(user)
    if clinic is None:
        raise PermissionError('Clinic not found')
    if clinic.declined:
        raise PermissionError('Clinic account has been declined')
    if not clinic.is_approved:
        raise PermissionError('Clinic account not approved. Please wait for admin approval.')

    doc, _ = clinic_permission_doc(clinic, clinic_role_for(user))
    items = []
    for item in _items('clinic'):
        subs_all = [{**s, 'path': transform_clinic_path(s.get('path') or '')} for s in item.sub_modules or []]
        if doc is None:
            items.append(_serialize_item(item, transform_clinic_path(item.path), subs_all))
            continue
        entry = next(
            (e for e in doc.permissions or []
             if isinstance(e, dict) and strip_role_prefix(e.get('module') or '') == strip_role_prefix(item.module_key)),
            None,
        )
        if entry is None:
            continue
        actions = entry.get('actions') or {}
        if not any(is_granted(actions.get(a)) for a in ACTIONS):
            continue
        sub_actions = _sub_actions_map(entry)
        subs = []
        for sub in subs_all:
            acts = sub_actions.get((sub.get('name') or '').strip().lower(), {})
            if is_granted(acts.get('read')) or is_granted(acts.get('all')):
                subs.append(sub)
        items.append(_serialize_item(
            item,
            transform_clinic_path(item.path),
            subs,
            permissions={a: is_granted(actions.get(a)) for a in ACTIONS},
        ))
    return {'clinicId': clinic.id, 'items': items}


def agent_has_module(user: User, module_key: str) -> bool:
    """Whether the staff sidebar would list ``module_key`` for ``user``."""
    doc = agent_permission_doc(user)
    if doc is None or not doc.permissions:
        return False
    entry = _lookup(build_permission_map(doc.permissions, navigation_role(user)), module_key, navigation_role(user))
    if entry is None:
        return False
    actions = entry.get('actions') or {}
    if any(is_granted(actions.get(a)) for a in ACTIONS):
        return True
    return any(
        any(is_granted(acts.get(a)) for a in ACTIONS) for acts in _sub_actions_map(entry).values()
    )


# ---------------------------------------------------------------------------
# Caching
# ---------------------------------------------------------------------------

VERSION_KEY = 'sidebar:version'


def _version() -> int:
    return cache.get_or_set(VERSION_KEY, 1, None)


def invalidate_sidebars() -> None:
    """Drop every cached sidebar; called whenever permissions or nav items change."""
    try:
        cache.incr(VERSION_KEY)
    except ValueError:
        cache.set(VERSION_KEY, 2, None)


def cached_sidebar(kind: str, user: User, build: Callable[[User], dict]) -> dict:
    ttl = settings.SIDEBAR_CACHE_SECONDS
    if ttl <= 0:
        return build(user)
    key = f'sidebar:{kind}:v{_version()}:u{user.id}'
    data = cache.get(key)
    if data is None:
        data = build(user)
        cache.set(key, data, ttl)
    return data


def _clean_sub_modules(sub_modules) -> list[dict]:
    if sub_modules in (None, ''):
        return []
    if not isinstance(sub_modules, list):
        raise ValueError('subModules must be an array')
    for i, sub in enumerate(sub_modules):
        if not isinstance(sub, dict) or not str(sub.get('name') or '').strip():
            raise ValueError(f'subModules at index {i} need a name')
    return sub_modules


def save_navigation_item(data) -> tuple[NavigationItem, bool]:
    """Create or update the navigation item of ``role`` keyed by ``moduleKey``."""
    role, module_key, label = data.get('role'), data.get('moduleKey'), data.get('label')
    if role not in dict(NavigationItem.ROLE_CHOICES) or not module_key or not label:
        raise ValueError('role, moduleKey and label are required')
    sub_modules = _clean_sub_modules(data.get('subModules'))
    try:
        order = int(data.get('order') or 0)
    except (TypeError, ValueError):
        raise ValueError('order must be a whole number')
    if order < 0:
        raise ValueError('order must be a whole number')
    item, created = NavigationItem.objects.update_or_create(
        role=role, module_key=module_key,
        defaults={
            'label': label,
            'path': data.get('path') or '',
            'icon': data.get('icon') or '',
            'description': data.get('description') or '',
            'order': order,
            'sub_modules': sub_modules,
            'is_active': data.get('isActive', True) not in (False, 'false'),
        },
    )
    invalidate_sidebars()
    return item, created
