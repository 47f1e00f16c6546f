"""Constant values use throughout the package."""
# Standard
from enum import Enum

SELECTION_TAG_KEY = "backup_plan"
SELECTION_TAG_CONDITION = "STRINGEQUALS"

DAILY_SCHEDULE = "cron(0 0 * * ? *)"
WEEKLY_SCHEDULE = "cron(0 0 ? * SUN *)"
MONTHLY_SCHEDULE = "cron(0 0 1 * ? *)"
YEARLY_SCHEDULE = "cron(0 0 1 1 ? *)"

# AWS requires recovery points to stay in cold storage for at least 90 days
MIN_COLD_STORAGE_RESIDENCY_DAYS = 90

BACKUP_SERVICE_PRINCIPAL = "backup.amazonaws.com"

# Actions a protected vault still allows. Everything else under backup:* is denied.
PROTECTED_VAULT_ALLOWED_ACTIONS = (
    "backup:CreateBackupVault",
    "backup:StartBackupJob",
    "backup:GetBackupVaultNotifications",
    "backup:PutBackupVaultNotifications",
    "backup:GetBackupVaultAccessPolicy",
    "backup:PutBackupVaultAccessPolicy",
)

DEFAULT_MANAGED_BY_TAG = "tiered-backup"


class BackupTier(Enum):
    """Priority classification that determines backup cadence and retention"""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class BackupRoleManagedPolicy(Enum):
    """AWS managed policies attached to the backup service role"""
    BACKUP = "service-role/AWSBackupServiceRolePolicyForBackup"
    RESTORES = "service-role/AWSBackupServiceRolePolicyForRestores"
    S3_BACKUP = "AWSBackupServiceRolePolicyForS3Backup"
    S3_RESTORE = "AWSBackupServiceRolePolicyForS3Restore"
