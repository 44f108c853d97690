"""Process identity check.

Monitoring agents run item scripts under a dedicated account. Cache files
written by another account (root, a developer shell) would end up with the
wrong owner and break later refills, so dispatch can be gated on the process
running as the expected user and group.
"""

import grp
import logging
import os
import pwd

from probecache.config_manager import DEFAULT_GROUP, DEFAULT_USER
from probecache.exceptions import IdentityError

logger = logging.getLogger(__name__)


def check_process_identity(user: str | None = None, group: str | None = None) -> None:
    """Verify the process runs as ``user``:``group``.

    Args:
        user: Expected user name (default: zabbix)
        group: Expected group name (default: zabbix)

    Raises:
        IdentityError: If a name is unknown or the process uid/gid differ
    """
    user = user or DEFAULT_USER
    group = group or DEFAULT_GROUP

    try:
        uid = pwd.getpwnam(user).pw_uid
    except KeyError as e:
        raise IdentityError(f"Unknown user '{user}'") from e

    try:
        gid = grp.getgrnam(group).gr_gid
    except KeyError as e:
        raise IdentityError(f"Unknown group '{group}'") from e

    if os.getuid() != uid:
        raise IdentityError(f"'{user}' user expected")

    if os.getgid() != gid:
        raise IdentityError(f"'{group}' group expected")

    logger.debug(f"Process identity verified: {user}:{group}")


__all__ = ["check_process_identity"]
