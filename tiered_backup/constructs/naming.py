"""Deterministic names for backup resources"""
# Standard
import hashlib
import re
from typing import Optional
# Local
from tiered_backup.constructs.constants import BackupTier

_INVALID_NAME_CHARS = re.compile(r"[^A-Za-z0-9_-]")
_INVALID_STACK_ID_CHARS = re.compile(r"[^A-Za-z0-9-]")

# Vault, plan and selection names are capped at 50 characters, IAM role names at 64
MAX_BACKUP_NAME_LENGTH = 50
MAX_ROLE_NAME_LENGTH = 64
MAX_STACK_NAME_LENGTH = 128

STACK_ID_PREFIX = "TieredBackup"

_HASH_LENGTH = 8


def _shorten(name: str, max_length: int, hash_source: str) -> str:
    """Truncate `name` to `max_length`, ending it with a short hash of `hash_source` so it stays unique"""
    if len(name) <= max_length:
        return name
    digest = hashlib.sha256(hash_source.encode("utf-8")).hexdigest()[:_HASH_LENGTH]
    return f"{name[:max_length - _HASH_LENGTH - 1].rstrip('-_')}-{digest}"


def resource_name(
        environment: str,
        kind: str,
        tier: Optional[BackupTier] = None,
        suffix: Optional[str] = None,
        max_length: int = MAX_BACKUP_NAME_LENGTH,
) -> str:
    """Build a resource name such as `dev-high-backup-vault-a1b2`

    Vault, plan and role names all share the `[A-Za-z0-9_-]` character set, so anything else in the
    environment or suffix is replaced with a hyphen. Names longer than `max_length` are truncated and end in a
    hash of the full name, so the same inputs always give the same name.

    Parameters
    ----------
    environment : str
        Deployment environment name
    kind : str
        Resource kind, e.g. "backup-vault"
    tier : Optional[BackupTier]
        Tier the resource belongs to. Omitted for shared resources like the service role.
    suffix : Optional[str]
        Caller supplied identifier that keeps names unique across deployments in one account
    max_length : int
        Longest name the resource accepts. Default is 50, the AWS Backup limit.

    Returns
    -------
    : str
    """
    parts = [environment]
    if tier is not None:
        parts.append(tier.value)
    parts.append(kind)
    if suffix:
        parts.append(suffix)
    full_name = "-".join(parts)
    return _shorten(_INVALID_NAME_CHARS.sub("-", full_name), max_length, full_name)


def stack_id(environment: str) -> str:
    """CloudFormation stack name for an environment, e.g. `TieredBackup-dev`

    Stack names only allow letters, digits and hyphens.
    """
    full_name = f"{STACK_ID_PREFIX}-{environment}"
    return _shorten(_INVALID_STACK_ID_CHARS.sub("-", full_name), MAX_STACK_NAME_LENGTH, full_name)
