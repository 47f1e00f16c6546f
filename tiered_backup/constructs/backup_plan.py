"""Construct for a single tier's AWS Backup plan and its tag based resource selection"""
# Standard
import logging
from typing import Optional, Union
# Installed
from constructs import Construct
from aws_cdk import (
    Duration,
    aws_backup as backup,
    aws_events as events,
    aws_iam as iam,
)
# Local
from tiered_backup.constructs.constants import SELECTION_TAG_CONDITION, SELECTION_TAG_KEY, BackupTier
from tiered_backup.constructs.naming import resource_name
from tiered_backup.policy import BackupPolicyConfig, DEFAULT_POLICY_CONFIG, resolve, validate_retention

logger = logging.getLogger(__name__)


class TieredBackupPlanConstruct(Construct):
    """Construct containing a backup plan whose single rule comes from the resolved tier policy

    Workloads opt in by carrying the `backup_plan` tag with the tier's selection value, e.g. `backup_plan=High`.
    """

    def __init__(
            self,
            scope: Construct,
            construct_id: str,
            *,
            tier: Union[BackupTier, str],
            environment: str,
            backup_vault: backup.IBackupVault,
            role: iam.IRole,
            policy_config: BackupPolicyConfig = DEFAULT_POLICY_CONFIG,
            name_suffix: Optional[str] = None,
            start_window: Duration = Duration.hours(1),
            completion_window: Duration = Duration.hours(2),
    ) -> None:
        """Construct init

        Parameters
        ----------
        scope : Construct
            The scope in which this Construct is instantiated, usually the `self` inside a Stack.
        construct_id : str
            ID for this construct instance, e.g. "HighPlan".
        tier : Union[BackupTier, str]
            Backup tier this plan implements.
        environment : str
            Deployment environment name, used to resolve the schedule and retention.
        backup_vault : backup.IBackupVault
            Vault that receives the recovery points, e.g. from a TieredBackupVaultConstruct.
        role : iam.IRole
            Role AWS Backup assumes for the selection, e.g. from a BackupServiceRoleConstruct.
        policy_config : BackupPolicyConfig
            Policy variant to resolve against. Default is the `gcc` variant.
        name_suffix : Optional[str]
            Identifier appended to the plan and selection names.
        start_window : Duration
            Time after the scheduled start before a job that hasn't started is canceled. Default is 1 hour.
        completion_window : Duration
            Time a started job has to complete before it is terminated. Default is 2 hours.

        Raises
        ------
        BackupPolicyError
            If the resolved retention would be rejected by AWS Backup
        """
        super().__init__(scope, construct_id)

        self.tier = BackupTier(tier)
        tier_policy = policy_config.tier_policy(self.tier)
        self.resolved_policy = resolve(self.tier, environment, policy_config)
        validate_retention(self.resolved_policy, tier=self.tier, environment=environment)
        logger.info(f"Resolved {self.tier.value} backup policy for {environment}: {self.resolved_policy}")

        self.plan_name = resource_name(environment, "backup-plan", tier=self.tier, suffix=name_suffix)

        self.backup_plan = backup.BackupPlan(
            self,
            "Plan",
            backup_plan_name=self.plan_name,
            backup_vault=backup_vault,
        )

        cold_storage_after = None
        if self.resolved_policy.cold_storage_after_days is not None:
            # All initial backups are "warm", they are tiered to cold storage after this many days
            cold_storage_after = Duration.days(self.resolved_policy.cold_storage_after_days)

        self.backup_plan.add_rule(
            backup.BackupPlanRule(
                rule_name=f"{self.tier.value}-{tier_policy.cadence}",
                schedule_expression=events.Schedule.expression(self.resolved_policy.schedule),
                start_window=start_window,
                completion_window=completion_window,
                move_to_cold_storage_after=cold_storage_after,
                delete_after=Duration.days(self.resolved_policy.delete_after_days),
            )
        )

        # L1 selection: the shared role already carries the backup policies and add_selection would attach them again
        self.selection = backup.CfnBackupSelection(
            self,
            "Selection",
            backup_plan_id=self.backup_plan.backup_plan_id,
            backup_selection=backup.CfnBackupSelection.BackupSelectionResourceTypeProperty(
                selection_name=resource_name(environment, "backup-selection", tier=self.tier, suffix=name_suffix),
                iam_role_arn=role.role_arn,
                list_of_tags=[
                    backup.CfnBackupSelection.ConditionResourceTypeProperty(
                        condition_key=SELECTION_TAG_KEY,
                        condition_type=SELECTION_TAG_CONDITION,
                        condition_value=tier_policy.selection_tag_value,
                    )
                ],
            ),
        )
