"""Construct for the IAM role that AWS Backup assumes to run backup and restore jobs"""
# Standard
import logging
from typing import Optional
# Installed
from constructs import Construct
from aws_cdk import aws_iam as iam
# Local
from tiered_backup.constructs.constants import BACKUP_SERVICE_PRINCIPAL, BackupRoleManagedPolicy
from tiered_backup.constructs.naming import MAX_ROLE_NAME_LENGTH, resource_name

logger = logging.getLogger(__name__)


class BackupServiceRoleConstruct(Construct):
    """IAM role shared by every backup selection in an environment"""

    def __init__(
            self,
            scope: Construct,
            construct_id: str,
            *,
            environment: str,
            name_suffix: Optional[str] = None,
            include_s3_policies: bool = True,
    ) -> None:
        """Construct init

        :param scope: Construct
            The scope in which this Construct is instantiated, usually the `self` inside a Stack.
        :param construct_id: str
            ID for this construct instance, e.g. "BackupServiceRole"
        :param environment: str
            Deployment environment name. Used to name the role.
        :param name_suffix: Optional[str]
            Identifier appended to the role name so several deployments can share an account.
        :param include_s3_policies: bool
            Attach the AWS managed S3 backup and restore policies. Needed when any tagged resource is an S3 bucket.
            Default is True.
        """
        super().__init__(scope, construct_id)

        managed_policies = [BackupRoleManagedPolicy.BACKUP, BackupRoleManagedPolicy.RESTORES]
        if include_s3_policies:
            managed_policies += [BackupRoleManagedPolicy.S3_BACKUP, BackupRoleManagedPolicy.S3_RESTORE]

        self.role_name = resource_name(
            environment, "backup-role", suffix=name_suffix, max_length=MAX_ROLE_NAME_LENGTH
        )

        # The backup service (and only the backup service) may assume this role
        self.role = iam.Role(
            self,
            "Role",
            role_name=self.role_name,
            assumed_by=iam.ServicePrincipal(BACKUP_SERVICE_PRINCIPAL),
            description=f"Role AWS Backup assumes to back up and restore {environment} resources",
            managed_policies=[
                iam.ManagedPolicy.from_aws_managed_policy_name(policy.value) for policy in managed_policies
            ],
        )
        logger.debug(f"Backup role {self.role_name} created with policies {[p.value for p in managed_policies]}")
