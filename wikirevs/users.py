from __future__ import annotations

import hashlib
import hmac
import ipaddress
import multiprocessing
from dataclasses import dataclass, field
from typing import Protocol

from wikirevs.config import WikiConfig

logger = multiprocessing.get_logger()

# appended to every edit token, so that broken proxies mangling '+' or '\' are detected
TOKEN_SUFFIX = '+\\'

ALL_USERS_GROUP = '*'
REGISTERED_USERS_GROUP = 'user'


def is_ip_address(name: str) -> bool:
    try:
        ipaddress.ip_address(name)
    except ValueError:
        return False
    return True


@dataclass
class User:
    """Wiki user identity

    Users named after an IP address are anonymous.

    Attributes:
        name: user name or IP address
        groups: explicit user groups (e.g. 'sysop', 'bot')
    """

    name: str = '127.0.0.1'
    groups: set[str] = field(default_factory=set)

    @property
    def is_anon(self) -> bool:
        return is_ip_address(self.name)

    def add_group(self, group: str) -> None:
        self.groups.add(group)

    def effective_groups(self) -> set[str]:
        """Explicit groups plus the implicit '*' (and 'user' for registered users)"""
        groups = {ALL_USERS_GROUP} | self.groups
        if not self.is_anon:
            groups.add(REGISTERED_USERS_GROUP)
        return groups

    def edit_token(self, salt: str | list[str], secret: str) -> str:
        """Token proving that a request was made by this user on purpose

        Args:
            salt: action specific salt, e.g. [page title, rolled back user name]
            secret: site secret (config.edit_token_secret)
        """
        if not isinstance(salt, str):
            salt = '|'.join(salt)
        message = f'{self.name}|{salt}'.encode('utf-8')
        digest = hmac.new(secret.encode('utf-8'), message, hashlib.sha256).hexdigest()
        return digest + TOKEN_SUFFIX

    def match_edit_token(self, token: str | None, salt: str | list[str], secret: str) -> bool:
        if not token:
            return False
        return hmac.compare_digest(token, self.edit_token(salt, secret))

    def signature(self) -> str:
        """Wikitext link used to sign talk page posts"""
        if self.is_anon:
            return f'[[Special:Contributions/{self.name}|{self.name}]]'
        return f'[[User:{self.name}|{self.name}]]'


class Authority(Protocol):
    """Permission checks (e.g. a session backend or a static group mapping)"""

    def has_capability(self, user: User, action: str) -> bool: ...


class GroupPermissions:
    """Authority granting capabilities through user groups (config.group_permissions)"""

    def __init__(self, config: WikiConfig):
        """Initialize the authority

        Args:
            config: wiki configuration with the group to capabilities mapping
        """
        self.group_permissions = config.group_permissions

    def has_capability(self, user: User, action: str) -> bool:
        allowed = any(action in self.group_permissions.get(g, ()) for g in user.effective_groups())
        if not allowed:
            logger.debug(f'User {user.name} lacks capability {action}')
        return allowed
