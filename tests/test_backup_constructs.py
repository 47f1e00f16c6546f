"""Test synthesis of the tiered backup constructs"""
# Installed
import pytest
from aws_cdk import RemovalPolicy
from aws_cdk.assertions import Match, Template
# Local
from tiered_backup.constructs.backup_role import BackupServiceRoleConstruct
from tiered_backup.constructs.backup_vault import TieredBackupVaultConstruct
from tiered_backup.constructs.constants import PROTECTED_VAULT_ALLOWED_ACTIONS, BackupTier
from tiered_backup.constructs.naming import MAX_BACKUP_NAME_LENGTH, MAX_ROLE_NAME_LENGTH, resource_name, stack_id
from tiered_backup.policy import GCC_POLICY, LONG_TERM_POLICY, WEEKLY_POLICY, BackupPolicyError


def _properties(template: Template, resource_type: str) -> list:
    return [r["Properties"] for r in template.find_resources(resource_type).values()]


def _plan_rules(template: Template) -> dict:
    """Map of plan name -> its single rule"""
    rules = {}
    for props in _properties(template, "AWS::Backup::BackupPlan"):
        plan = props["BackupPlan"]
        assert len(plan["BackupPlanRule"]) == 1
        rules[plan["BackupPlanName"]] = plan["BackupPlanRule"][0]
    return rules


def _lifecycle(rule: dict) -> tuple:
    lifecycle = rule["Lifecycle"]
    return lifecycle["DeleteAfterDays"], lifecycle.get("MoveToColdStorageAfterDays")


def test_resource_counts(synth_backup):
    _, template = synth_backup("dev")
    template.resource_count_is("AWS::Backup::BackupVault", 3)
    template.resource_count_is("AWS::Backup::BackupPlan", 3)
    template.resource_count_is("AWS::Backup::BackupSelection", 3)
    template.resource_count_is("AWS::IAM::Role", 1)
    # Role ARN plus name, ARN, plan ID and plan ARN for each tier
    assert len(template.find_outputs("*")) == 13


def test_plan_rules_follow_resolved_policy(synth_backup):
    construct, template = synth_backup("dev")
    rules = _plan_rules(template)

    assert set(rules) == {"dev-high-backup-plan", "dev-medium-backup-plan", "dev-low-backup-plan"}
    high = rules["dev-high-backup-plan"]
    assert high["RuleName"] == "high-daily"
    assert high["ScheduleExpression"] == "cron(0 0 * * ? *)"
    assert _lifecycle(high) == (7, None)
    assert high["StartWindowMinutes"] == 60
    assert high["CompletionWindowMinutes"] == 120
    assert _lifecycle(rules["dev-medium-backup-plan"]) == (30, None)
    assert rules["dev-low-backup-plan"]["ScheduleExpression"] == "cron(0 0 1 1 ? *)"

    assert construct.resolved_policies[BackupTier.HIGH] == ("cron(0 0 * * ? *)", 7, None)


def test_unknown_environment_uses_default_schedules(synth_backup):
    _, template = synth_backup("sandbox")
    rules = _plan_rules(template)
    assert rules["sandbox-high-backup-plan"]["ScheduleExpression"] == "cron(0 0 * * ? *)"
    assert rules["sandbox-medium-backup-plan"]["ScheduleExpression"] == "cron(0 0 1 * ? *)"
    assert rules["sandbox-low-backup-plan"]["ScheduleExpression"] == "cron(0 0 1 1 ? *)"


def test_weekly_variant(synth_backup):
    _, template = synth_backup("prod", policy_config=WEEKLY_POLICY)
    medium = _plan_rules(template)["prod-medium-backup-plan"]
    assert medium["RuleName"] == "medium-weekly"
    assert medium["ScheduleExpression"] == "cron(0 0 ? * SUN *)"
    assert _lifecycle(medium) == (28, None)
    template.has_resource_properties(
        "AWS::Backup::BackupSelection",
        {
            "BackupSelection": Match.object_like({
                "ListOfTags": [
                    Match.object_like({"ConditionKey": "backup_plan", "ConditionValue": "medium"})
                ]
            })
        },
    )


def test_selections_use_backup_plan_tag(synth_backup):
    _, template = synth_backup("dev")
    selections = _properties(template, "AWS::Backup::BackupSelection")
    tag_values = set()
    for props in selections:
        (condition,) = props["BackupSelection"]["ListOfTags"]
        assert condition["ConditionKey"] == "backup_plan"
        assert condition["ConditionType"] == "STRINGEQUALS"
        tag_values.add(condition["ConditionValue"])
        assert "IamRoleArn" in props["BackupSelection"]
    assert tag_values == {"High", "Medium", "Low"}


def test_cold_storage_for_sentinel_environment(synth_backup):
    config = LONG_TERM_POLICY.with_sentinels(cold_storage_environments=["archive"])
    _, template = synth_backup("archive", policy_config=config, tiers=["medium", "low"])
    rules = _plan_rules(template)
    assert _lifecycle(rules["archive-medium-backup-plan"]) == (365, 60)
    assert _lifecycle(rules["archive-low-backup-plan"]) == (1825, 30)


def test_gcc_prod_low_tier_moves_to_cold_storage(synth_backup):
    construct, template = synth_backup("gcc-prod", tiers=["low"])
    template.resource_count_is("AWS::Backup::BackupPlan", 1)
    rule = _plan_rules(template)["gcc-prod-low-backup-plan"]
    assert _lifecycle(rule) == (365, 120)
    assert list(construct.vaults) == [BackupTier.LOW]


def test_retention_rejected_by_aws_raises(synth_backup):
    # 7 day retention can't follow a 120 day cold storage transition
    with pytest.raises(BackupPolicyError) as e:
        synth_backup("gcc-prod")
    assert e.value.tier is BackupTier.HIGH
    assert e.value.environment == "gcc-prod"


def test_unprotected_vaults_have_no_access_policy(synth_backup):
    construct, template = synth_backup("prod")
    for props in _properties(template, "AWS::Backup::BackupVault"):
        assert "AccessPolicy" not in props
    assert not any(v.protected for v in construct.vaults.values())


def test_protected_environment_denies_destructive_actions(synth_backup):
    construct, template = synth_backup("platform")
    vaults = template.find_resources("AWS::Backup::BackupVault")
    assert len(vaults) == 3
    for vault in vaults.values():
        assert vault["DeletionPolicy"] == "Retain"
        (statement,) = vault["Properties"]["AccessPolicy"]["Statement"]
        assert statement["Effect"] == "Deny"
        assert statement["Principal"] == {"AWS": "*"}
        assert sorted(statement["NotAction"]) == sorted(PROTECTED_VAULT_ALLOWED_ACTIONS)
        assert "Action" not in statement
    assert all(v.protected for v in construct.vaults.values())


def test_protection_sentinel_differs_per_variant(synth_backup):
    _, template = synth_backup("staging", policy_config=WEEKLY_POLICY)
    for props in _properties(template, "AWS::Backup::BackupVault"):
        assert "AccessPolicy" in props


def test_protected_tiers_limit_protection(synth_backup):
    config = GCC_POLICY.with_sentinels(protected_tiers=[BackupTier.HIGH])
    construct, template = synth_backup("platform", policy_config=config)
    assert construct.vaults[BackupTier.HIGH].protected
    assert not construct.vaults[BackupTier.MEDIUM].protected
    assert not construct.vaults[BackupTier.LOW].protected
    protected = [p for p in _properties(template, "AWS::Backup::BackupVault") if "AccessPolicy" in p]
    assert [p["BackupVaultName"] for p in protected] == ["platform-high-backup-vault"]


def test_protected_vault_ignores_destroy_removal_policy(cdk_stack):
    with pytest.warns(UserWarning, match="protected from deletion"):
        TieredBackupVaultConstruct(
            cdk_stack,
            "Vault",
            tier="high",
            environment="platform",
            removal_policy=RemovalPolicy.DESTROY,
        )
    (vault,) = Template.from_stack(cdk_stack).find_resources("AWS::Backup::BackupVault").values()
    assert vault["DeletionPolicy"] == "Retain"


def test_unprotected_vault_honours_removal_policy(cdk_stack):
    TieredBackupVaultConstruct(cdk_stack, "Vault", tier="low", environment="dev",
                               removal_policy=RemovalPolicy.DESTROY)
    (vault,) = Template.from_stack(cdk_stack).find_resources("AWS::Backup::BackupVault").values()
    assert vault["DeletionPolicy"] == "Delete"


def test_name_suffix_applies_to_every_name(synth_backup):
    _, template = synth_backup("dev", name_suffix="a1b2")
    vault_names = {p["BackupVaultName"] for p in _properties(template, "AWS::Backup::BackupVault")}
    assert vault_names == {"dev-high-backup-vault-a1b2", "dev-medium-backup-vault-a1b2", "dev-low-backup-vault-a1b2"}
    assert set(_plan_rules(template)) == {"dev-high-backup-plan-a1b2", "dev-medium-backup-plan-a1b2",
                                          "dev-low-backup-plan-a1b2"}
    template.has_resource_properties("AWS::IAM::Role", {"RoleName": "dev-backup-role-a1b2"})


def test_resource_name_replaces_invalid_characters():
    assert resource_name("qa env/1", "backup-vault", tier=BackupTier.HIGH) == "qa-env-1-high-backup-vault"
    assert resource_name("dev", "backup-role") == "dev-backup-role"


def test_resource_name_shortens_long_names():
    environment = "customer-acme-production-eu-west"
    name = resource_name(environment, "backup-selection", tier=BackupTier.MEDIUM, suffix="a1b2")
    assert len(name) == MAX_BACKUP_NAME_LENGTH
    assert name.startswith("customer-acme-production-eu-west-medium-")
    # Reproducible, and distinct for names that share the truncated prefix
    assert name == resource_name(environment, "backup-selection", tier=BackupTier.MEDIUM, suffix="a1b2")
    assert name != resource_name(environment, "backup-selection", tier=BackupTier.MEDIUM, suffix="c3d4")
    assert resource_name(environment, "backup-role", suffix="a1b2", max_length=MAX_ROLE_NAME_LENGTH) == (
        "customer-acme-production-eu-west-backup-role-a1b2"
    )
    assert len(resource_name("x" * 80, "backup-role", max_length=MAX_ROLE_NAME_LENGTH)) == MAX_ROLE_NAME_LENGTH


def test_long_environment_names_fit_aws_limits(synth_backup):
    _, template = synth_backup("customer-acme-production-eu-west", name_suffix="a1b2")
    vault_names = [p["BackupVaultName"] for p in _properties(template, "AWS::Backup::BackupVault")]
    selection_names = [p["BackupSelection"]["SelectionName"]
                       for p in _properties(template, "AWS::Backup::BackupSelection")]
    for names in (vault_names, selection_names, list(_plan_rules(template))):
        assert len(set(names)) == 3
        assert all(len(n) <= MAX_BACKUP_NAME_LENGTH for n in names)
    (role,) = _properties(template, "AWS::IAM::Role")
    assert len(role["RoleName"]) <= MAX_ROLE_NAME_LENGTH


def test_stack_id_is_a_valid_stack_name():
    assert stack_id("dev") == "TieredBackup-dev"
    assert stack_id("qa.env_1") == "TieredBackup-qa-env-1"
    assert len(stack_id("e" * 200)) == 128


def test_tags_are_merged_and_applied(synth_backup):
    construct, template = synth_backup("dev", tags={"Project": "atlas", "ManagedBy": "platform-team"})
    assert construct.tags == {"Environment": "dev", "ManagedBy": "platform-team", "Project": "atlas"}
    for props in _properties(template, "AWS::Backup::BackupVault"):
        assert props["BackupVaultTags"] == construct.tags
    template.has_resource_properties(
        "AWS::Backup::BackupPlan",
        {"BackupPlanTags": Match.object_like({"Project": "atlas", "Environment": "dev"})},
    )


def test_service_role(cdk_stack):
    BackupServiceRoleConstruct(cdk_stack, "Role", environment="dev")
    template = Template.from_stack(cdk_stack)
    template.has_resource_properties(
        "AWS::IAM::Role",
        {
            "RoleName": "dev-backup-role",
            "AssumeRolePolicyDocument": Match.object_like({
                "Statement": [
                    Match.object_like({
                        "Action": "sts:AssumeRole",
                        "Effect": "Allow",
                        "Principal": {"Service": "backup.amazonaws.com"},
                    })
                ]
            }),
        },
    )
    (props,) = _properties(template, "AWS::IAM::Role")
    assert len(props["ManagedPolicyArns"]) == 4


def test_service_role_without_s3_policies(synth_backup):
    _, template = synth_backup("dev", include_s3_policies=False)
    (props,) = _properties(template, "AWS::IAM::Role")
    assert len(props["ManagedPolicyArns"]) == 2
    rendered = str(props["ManagedPolicyArns"])
    assert "AWSBackupServiceRolePolicyForBackup" in rendered
    assert "AWSBackupServiceRolePolicyForRestores" in rendered
