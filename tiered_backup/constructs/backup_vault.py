"""Construct for a single tier's AWS Backup vault"""
# Standard
import logging
from typing import Optional, Union
import warnings
# Installed
from constructs import Construct
from aws_cdk import (
    RemovalPolicy,
    aws_backup as backup,
    aws_iam as iam,
)
# Local
from tiered_backup.constructs.constants import PROTECTED_VAULT_ALLOWED_ACTIONS, BackupTier
from tiered_backup.constructs.naming import resource_name
from tiered_backup.policy import BackupPolicyConfig, DEFAULT_POLICY_CONFIG, is_vault_protected

logger = logging.getLogger(__name__)


def protection_policy_statement() -> iam.PolicyStatement:
    """Vault access policy statement that denies every backup action except the operational allow-list

    Applies to all principals, so even account administrators can't delete the vault or its recovery points
    without first replacing the access policy.
    """
    return iam.PolicyStatement(
        sid="DenyDestructiveBackupActions",
        effect=iam.Effect.DENY,
        principals=[iam.AnyPrincipal()],
        not_actions=list(PROTECTED_VAULT_ALLOWED_ACTIONS),
        resources=["*"],
    )


class TieredBackupVaultConstruct(Construct):
    """Construct containing the AWS Backup vault that stores recovery points for one tier"""

    def __init__(
            self,
            scope: Construct,
            construct_id: str,
            *,
            tier: Union[BackupTier, str],
            environment: str,
            policy_config: BackupPolicyConfig = DEFAULT_POLICY_CONFIG,
            name_suffix: Optional[str] = None,
            removal_policy: RemovalPolicy = RemovalPolicy.RETAIN,
    ) -> None:
        """Construct init

        :param scope: Construct
            The scope in which this Construct is instantiated, usually the `self` inside a Stack.
        :param construct_id: str
            ID for this construct instance, e.g. "HighVault"
        :param tier: Union[BackupTier, str]
            Backup tier this vault serves
        :param environment: str
            Deployment environment name. Together with the policy config this decides whether the vault is protected.
        :param policy_config: BackupPolicyConfig
            Policy variant carrying the protected environment and tier sets. Default is the `gcc` variant.
        :param name_suffix: Optional[str]
            Identifier appended to the vault name so several deployments can share an account.
        :param removal_policy: RemovalPolicy
            What happens to the vault when the stack is destroyed. Default is RETAIN.
            Protected vaults are always retained.
        """
        super().__init__(scope, construct_id)

        self.tier = BackupTier(tier)
        self.protected = is_vault_protected(self.tier, environment, policy_config)
        self.vault_name = resource_name(environment, "backup-vault", tier=self.tier, suffix=name_suffix)

        access_policy = None
        if self.protected:
            if removal_policy != RemovalPolicy.RETAIN:
                warnings.warn(f"Vault {self.vault_name} is protected from deletion in environment {environment!r}. "
                              f"Ignoring the requested removal policy and retaining the vault.")
            removal_policy = RemovalPolicy.RETAIN
            access_policy = iam.PolicyDocument(statements=[protection_policy_statement()])
            logger.info(f"Attaching deletion prevention policy to vault {self.vault_name}")

        # If this stack is destroyed, a retained vault requires manual intervention to remove
        self.backup_vault = backup.BackupVault(
            self,
            "Vault",
            backup_vault_name=self.vault_name,
            removal_policy=removal_policy,
            access_policy=access_policy,
        )
