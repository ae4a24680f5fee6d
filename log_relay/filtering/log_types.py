"""
Log type classification table.

Maps every event type code the source emits to a human description and a
severity level (0 debug, 1 info, 2 warning, 3 error, 4 critical). API
operation codes carry no level; they are operational noise and never
relayed.
"""
from types import MappingProxyType
from typing import Mapping, NamedTuple, Optional


class LogType(NamedTuple):
    """Description and severity of a type code."""
    description: str
    level: Optional[int]


DEBUG, INFO, WARNING, ERROR, CRITICAL = range(5)

LOG_TYPES: Mapping[str, LogType] = MappingProxyType({
    's': LogType('Success Login', INFO),
    'seacft': LogType('Success Exchange', INFO),
    'feacft': LogType('Failed Exchange', ERROR),
    'f': LogType('Failed Login', ERROR),
    'w': LogType('Warnings During Login', WARNING),
    'du': LogType('Deleted User', INFO),
    'fu': LogType('Failed Login (invalid email/username)', ERROR),
    'fp': LogType('Failed Login (wrong password)', ERROR),
    'fc': LogType('Failed by Connector', ERROR),
    'fco': LogType('Failed by CORS', ERROR),
    'con': LogType('Connector Online', INFO),
    'coff': LogType('Connector Offline', ERROR),
    'fcpro': LogType('Failed Connector Provisioning', CRITICAL),
    'ss': LogType('Success Signup', INFO),
    'fs': LogType('Failed Signup', ERROR),
    'cs': LogType('Code Sent', DEBUG),
    'cls': LogType('Code/Link Sent', DEBUG),
    'sv': LogType('Success Verification Email', DEBUG),
    'fv': LogType('Failed Verification Email', DEBUG),
    'scp': LogType('Success Change Password', INFO),
    'fcp': LogType('Failed Change Password', ERROR),
    'sce': LogType('Success Change Email', INFO),
    'fce': LogType('Failed Change Email', ERROR),
    'scu': LogType('Success Change Username', INFO),
    'fcu': LogType('Failed Change Username', ERROR),
    'scpn': LogType('Success Change Phone Number', INFO),
    'fcpn': LogType('Failed Change Phone Number', ERROR),
    'svr': LogType('Success Verification Email Request', DEBUG),
    'fvr': LogType('Failed Verification Email Request', ERROR),
    'scpr': LogType('Success Change Password Request', DEBUG),
    'fcpr': LogType('Failed Change Password Request', ERROR),
    'fn': LogType('Failed Sending Notification', ERROR),
    'sapi': LogType('API Operation', None),
    'fapi': LogType('Failed API Operation', None),
    'limit_wc': LogType('Blocked Account', CRITICAL),
    'limit_ui': LogType('Too Many Calls to /userinfo', CRITICAL),
    'api_limit': LogType('Rate Limit On API', CRITICAL),
    'sdu': LogType('Successful User Deletion', INFO),
    'fdu': LogType('Failed User Deletion', ERROR),
})

# Never relayed, whatever the allow-list says.
EXCLUDED_TYPES = frozenset({'sapi', 'fapi'})


def is_known(type_code: Optional[str]) -> bool:
    return type_code is not None and type_code in LOG_TYPES


def level_for(type_code: Optional[str]) -> Optional[int]:
    """Severity of a type code, or None when unclassified."""
    if type_code is None:
        return None
    log_type = LOG_TYPES.get(type_code)
    return log_type.level if log_type else None


def describe(type_code: Optional[str]) -> str:
    log_type = LOG_TYPES.get(type_code) if type_code else None
    return log_type.description if log_type else (type_code or 'unknown')
