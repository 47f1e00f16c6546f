"""Stack wrapping the tiered backup construct for a single deployment environment"""
# Standard
from typing import Iterable, Mapping, Optional, Union
# Installed
from constructs import Construct
from aws_cdk import Stack
# Local
from tiered_backup.backup import TieredBackupConstruct
from tiered_backup.constructs.constants import BackupTier
from tiered_backup.policy import BackupPolicyConfig


class TieredBackupStack(Stack):
    """Stack containing all AWS Backup resources for one environment"""

    def __init__(
            self,
            scope: Construct,
            construct_id: str,
            *,
            environment: str,
            policy_config: Optional[BackupPolicyConfig] = None,
            name_suffix: Optional[str] = None,
            backup_tags: Optional[Mapping[str, str]] = None,
            include_s3_policies: bool = True,
            tiers: Optional[Iterable[Union[BackupTier, str]]] = None,
            **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.backup = TieredBackupConstruct(
            self,
            "TieredBackup",
            environment=environment,
            policy_config=policy_config,
            name_suffix=name_suffix,
            tags=backup_tags,
            include_s3_policies=include_s3_policies,
            tiers=tiers,
        )
