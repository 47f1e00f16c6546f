"""CDK app for deploying tiered AWS Backup into one environment

Everything deploy-specific comes from CDK context, either in cdk.json or on the command line::

    cdk deploy -c environment=prod -c backup_variant=weekly -c name_suffix=a1b2

Context keys
------------
environment : str
    Required. Deployment environment name.
backup_variant : str
    Named policy variant (gcc, long-term, weekly). Default is gcc.
backup_policy : dict
    Fully custom policy configuration, see `tiered_backup.policy.policy_config_from_dict`. Overrides backup_variant.
name_suffix : str
    Identifier appended to every resource name.
tags : dict
    Extra tags for every resource.
tiers : list
    Subset of tiers to deploy, e.g. `-c tiers=medium,low`. Default is every tier of the policy.
protected_environments, cold_storage_environments : list
    Override the sentinel environments of the chosen variant.
account, region : str
    Optional target account and region for the stack.
"""
# Standard
import json
import logging
import os
from typing import Optional
# Installed
from aws_cdk import App, Environment
# Local
from tiered_backup.constructs.naming import stack_id
from tiered_backup.policy import (
    BackupPolicyConfig,
    BackupPolicyError,
    get_policy_config,
    policy_config_from_dict,
)
from tiered_backup.stack import TieredBackupStack

logger = logging.getLogger(__name__)


def _load_json_context(key: str, value: str):
    try:
        return json.loads(value)
    except json.JSONDecodeError as e:
        raise BackupPolicyError(f"CDK context value {key!r} is not valid JSON: {e}")


def _context_list(app: App, key: str) -> Optional[list]:
    """Context values passed with -c arrive as strings, so accept JSON or comma separated lists"""
    value = app.node.try_get_context(key)
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if value.startswith("["):
            return _load_json_context(key, value)
        return [v.strip() for v in value.split(",") if v.strip()]
    return list(value)


def _context_dict(app: App, key: str) -> Optional[dict]:
    value = app.node.try_get_context(key)
    if isinstance(value, str):
        return _load_json_context(key, value)
    return value


def policy_config_from_context(app: App) -> BackupPolicyConfig:
    """Select (or build) the policy variant described by the app's context"""
    custom_policy = _context_dict(app, "backup_policy")
    if custom_policy:
        config = policy_config_from_dict(custom_policy)
    else:
        config = get_policy_config(app.node.try_get_context("backup_variant") or "gcc")

    return config.with_sentinels(
        cold_storage_environments=_context_list(app, "cold_storage_environments"),
        protected_environments=_context_list(app, "protected_environments"),
    )


def build_app(app: Optional[App] = None) -> App:
    """Add a TieredBackupStack to `app` (a new App by default) using its context

    Raises
    ------
    BackupPolicyError
        If the `environment` context value is missing or the policy configuration is invalid
    """
    logging.basicConfig(level=os.environ.get("CONSOLE_LOG_LEVEL", "INFO"))
    app = app or App()

    environment = app.node.try_get_context("environment")
    if not environment:
        raise BackupPolicyError("CDK context value 'environment' is required, e.g. `cdk deploy -c environment=dev`")

    policy_config = policy_config_from_context(app)

    account = app.node.try_get_context("account") or os.environ.get("CDK_DEFAULT_ACCOUNT")
    region = app.node.try_get_context("region") or os.environ.get("CDK_DEFAULT_REGION")
    env = Environment(account=account, region=region) if account or region else None

    logger.info(f"Building tiered backup stack for {environment} with policy variant {policy_config.name}")
    TieredBackupStack(
        app,
        stack_id(environment),
        env=env,
        environment=environment,
        policy_config=policy_config,
        name_suffix=app.node.try_get_context("name_suffix"),
        backup_tags=_context_dict(app, "tags"),
        tiers=_context_list(app, "tiers"),
    )
    return app
