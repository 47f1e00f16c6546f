"""CDK resources for tiered AWS Backup vaults, plans and selections"""
# Standard
import logging
from typing import Iterable, Mapping, Optional, Union
# Installed
from constructs import Construct
from aws_cdk import CfnOutput
# Local
from tiered_backup.constructs.backup_plan import TieredBackupPlanConstruct
from tiered_backup.constructs.backup_role import BackupServiceRoleConstruct
from tiered_backup.constructs.backup_vault import TieredBackupVaultConstruct
from tiered_backup.constructs.constants import BackupTier
from tiered_backup.policy import BackupPolicyConfig, DEFAULT_POLICY_CONFIG
from tiered_backup.tags import apply_tags, default_tags, merge_tags

logger = logging.getLogger(__name__)


class TieredBackupConstruct(Construct):
    """Construct containing the backup vault, plan and selection for every tier, plus the shared service role"""

    def __init__(
            self,
            scope: Construct,
            construct_id: str,
            *,
            environment: str,
            policy_config: Optional[BackupPolicyConfig] = None,
            name_suffix: Optional[str] = None,
            tags: Optional[Mapping[str, str]] = None,
            include_s3_policies: bool = True,
            tiers: Optional[Iterable[Union[BackupTier, str]]] = None,
    ) -> None:
        """Creates one vault and one plan per tier. Workloads choose a tier by carrying the `backup_plan` tag.

        Parameters
        ----------
        scope : Construct
            The scope in which this Construct is instantiated, usually the `self` inside a Stack.
        construct_id : str
            ID for this construct instance, e.g. "TieredBackup".
        environment : str
            Deployment environment name. Drives schedules, cold storage and vault protection.
        policy_config : Optional[BackupPolicyConfig]
            Policy variant. Default is the `gcc` variant.
        name_suffix : Optional[str]
            Identifier appended to every resource name. Pass the same value on every deployment to keep names stable.
        tags : Optional[Mapping[str, str]]
            Extra tags merged over the default Environment/ManagedBy tags.
        include_s3_policies : bool
            Attach the S3 backup and restore managed policies to the service role. Default is True.
        tiers : Optional[Iterable[Union[BackupTier, str]]]
            Subset of tiers to create. Default is every tier the policy variant configures.
        """
        super().__init__(scope, construct_id)

        policy_config = policy_config or DEFAULT_POLICY_CONFIG
        if tiers is None:
            tiers = [t for t in BackupTier if t in policy_config.tiers]
        tiers = [BackupTier(t) for t in tiers]

        self.environment = environment
        self.tags = merge_tags(default_tags(environment), tags)
        self.vaults = {}
        self.plans = {}
        self.resolved_policies = {}

        self.service_role = BackupServiceRoleConstruct(
            self,
            "ServiceRole",
            environment=environment,
            name_suffix=name_suffix,
            include_s3_policies=include_s3_policies,
        )
        CfnOutput(
            self,
            "BackupRoleArn",
            value=self.service_role.role.role_arn,
            description=f"Role AWS Backup assumes for {environment} selections",
        )

        for tier in tiers:
            label = tier.value.capitalize()
            vault = TieredBackupVaultConstruct(
                self,
                f"{label}Vault",
                tier=tier,
                environment=environment,
                policy_config=policy_config,
                name_suffix=name_suffix,
            )
            plan = TieredBackupPlanConstruct(
                self,
                f"{label}Plan",
                tier=tier,
                environment=environment,
                backup_vault=vault.backup_vault,
                role=self.service_role.role,
                policy_config=policy_config,
                name_suffix=name_suffix,
            )
            self.vaults[tier] = vault
            self.plans[tier] = plan
            self.resolved_policies[tier] = plan.resolved_policy
            self._add_tier_outputs(label, vault, plan)

        apply_tags(self, self.tags)
        logger.info(f"Created {len(tiers)} backup tier(s) for environment {environment} "
                    f"using policy variant {policy_config.name}")

    def _add_tier_outputs(
            self,
            label: str,
            vault: TieredBackupVaultConstruct,
            plan: TieredBackupPlanConstruct
    ):
        """Stack outputs for one tier's vault and plan"""
        CfnOutput(self, f"{label}VaultName", value=vault.backup_vault.backup_vault_name)
        CfnOutput(self, f"{label}VaultArn", value=vault.backup_vault.backup_vault_arn)
        CfnOutput(self, f"{label}PlanId", value=plan.backup_plan.backup_plan_id)
        CfnOutput(self, f"{label}PlanArn", value=plan.backup_plan.backup_plan_arn)
