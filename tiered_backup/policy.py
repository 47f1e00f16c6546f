"""Backup policy resolution for tiered AWS Backup plans

A policy variant maps every backup tier to a schedule table, a retention period and an optional cold storage
transition. Resolving a (tier, environment) pair looks the environment up in the tier's schedule table and falls
back to the tier default when the environment is unknown. Nothing here talks to AWS; the resolved values are handed
to the CDK constructs in `tiered_backup.constructs`.
"""
# Standard
from dataclasses import dataclass, field, replace
import logging
from types import MappingProxyType
from typing import Any, Iterable, Mapping, NamedTuple, Optional, Union
# Local
from tiered_backup.constructs.constants import (
    DAILY_SCHEDULE,
    WEEKLY_SCHEDULE,
    MONTHLY_SCHEDULE,
    YEARLY_SCHEDULE,
    MIN_COLD_STORAGE_RESIDENCY_DAYS,
    BackupTier,
)

logger = logging.getLogger(__name__)


class BackupPolicyError(Exception):
    """
    Raised when a backup policy cannot be built or would be rejected by AWS Backup.

    Attributes
    ----------
    message : str
        A human-readable error message describing the failure.
    tier : BackupTier
        Tier being resolved when the failure happened, if any.
    environment : str
        Deployment environment being resolved when the failure happened, if any.
    """

    def __init__(self, message: str, tier: Optional[BackupTier] = None, environment: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.tier = tier
        self.environment = environment

    def __str__(self):
        parts = [f"Message: {self.message}"]
        if self.tier:
            parts.append(f"Tier: {self.tier.value}")
        if self.environment:
            parts.append(f"Environment: {self.environment}")
        return " | ".join(parts)


class ResolvedBackupPolicy(NamedTuple):
    """Schedule and retention for a single backup plan rule"""
    schedule: str
    delete_after_days: int
    cold_storage_after_days: Optional[int]


@dataclass(frozen=True)
class TierPolicy:
    """Schedule table and retention for one tier of a policy variant"""
    cadence: str
    default_schedule: str
    delete_after_days: int
    selection_tag_value: str
    environment_schedules: Mapping[str, str] = field(default_factory=dict)
    # Only applied to environments listed in BackupPolicyConfig.cold_storage_environments
    cold_storage_after_days: Optional[int] = None

    def __post_init__(self):
        # Read-only copy of the caller's mapping
        object.__setattr__(self, "environment_schedules", MappingProxyType(dict(self.environment_schedules)))

    def __hash__(self):
        return hash((
            self.cadence,
            self.default_schedule,
            self.delete_after_days,
            self.selection_tag_value,
            frozenset(self.environment_schedules.items()),
            self.cold_storage_after_days,
        ))


def _environment_set(key: str, environments: Iterable[str]) -> frozenset:
    """Sentinel environment names as a frozenset. A bare string is rejected instead of being split into characters."""
    if isinstance(environments, str) or not isinstance(environments, Iterable):
        raise BackupPolicyError(f"{key} must be a list of environment names, got {environments!r}")
    return frozenset(str(e) for e in environments)


def _tier_set(tiers: Iterable[Union[BackupTier, str]]) -> frozenset:
    if isinstance(tiers, str) or not isinstance(tiers, Iterable):
        raise BackupPolicyError(f"protected_tiers must be a list of tiers, got {tiers!r}")
    try:
        return frozenset(BackupTier(t) for t in tiers)
    except ValueError as e:
        raise BackupPolicyError(f"Invalid protected_tiers: {e}")


@dataclass(frozen=True)
class BackupPolicyConfig:
    """A complete policy variant

    The sentinel environments that switch on cold storage and vault deletion protection are explicit inputs
    here rather than string comparisons scattered through the constructs. Configs are immutable and hashable,
    so the module level variants can be shared safely.

    Raises
    ------
    BackupPolicyError
        If a sentinel set is a bare string or names an unknown tier
    """
    name: str
    tiers: Mapping[BackupTier, TierPolicy]
    cold_storage_environments: frozenset = frozenset()
    protected_environments: frozenset = frozenset()
    protected_tiers: frozenset = frozenset(BackupTier)

    def __post_init__(self):
        object.__setattr__(self, "tiers", MappingProxyType(dict(self.tiers)))
        object.__setattr__(self, "cold_storage_environments",
                           _environment_set("cold_storage_environments", self.cold_storage_environments))
        object.__setattr__(self, "protected_environments",
                           _environment_set("protected_environments", self.protected_environments))
        object.__setattr__(self, "protected_tiers", _tier_set(self.protected_tiers))

    def __hash__(self):
        return hash((
            self.name,
            frozenset(self.tiers.items()),
            self.cold_storage_environments,
            self.protected_environments,
            self.protected_tiers,
        ))

    def tier_policy(self, tier: Union[BackupTier, str]) -> TierPolicy:
        """Returns the TierPolicy for `tier`, raising BackupPolicyError if this variant doesn't configure it"""
        tier = BackupTier(tier)
        try:
            return self.tiers[tier]
        except KeyError:
            raise BackupPolicyError(f"Policy variant {self.name} has no configuration for this tier", tier=tier)

    def with_sentinels(
            self,
            *,
            cold_storage_environments: Optional[Iterable[str]] = None,
            protected_environments: Optional[Iterable[str]] = None,
            protected_tiers: Optional[Iterable[Union[BackupTier, str]]] = None,
    ) -> "BackupPolicyConfig":
        """Returns a copy of this config with some or all of its sentinel sets replaced

        Parameters
        ----------
        cold_storage_environments : Optional[Iterable[str]]
            Environments that get the per-tier cold storage transition. None keeps the current set.
        protected_environments : Optional[Iterable[str]]
            Environments whose vaults get a deletion prevention access policy. None keeps the current set.
        protected_tiers : Optional[Iterable[Union[BackupTier, str]]]
            Tiers whose vaults are eligible for deletion protection. None keeps the current set.

        Returns
        -------
        : BackupPolicyConfig

        Raises
        ------
        BackupPolicyError
            If a replacement set is a bare string (e.g. "platform" instead of ["platform"]) or names an unknown tier
        """
        changes = {}
        if cold_storage_environments is not None:
            changes["cold_storage_environments"] = cold_storage_environments
        if protected_environments is not None:
            changes["protected_environments"] = protected_environments
        if protected_tiers is not None:
            changes["protected_tiers"] = protected_tiers
        return replace(self, **changes)


GCC_POLICY = BackupPolicyConfig(
    name="gcc",
    tiers={
        BackupTier.HIGH: TierPolicy(
            cadence="daily",
            default_schedule=DAILY_SCHEDULE,
            delete_after_days=7,
            cold_storage_after_days=120,
            selection_tag_value="High",
            environment_schedules={
                "dev": "cron(0 0 * * ? *)",
                "staging": "cron(0 1 * * ? *)",
                "prod": "cron(0 2 * * ? *)",
                "gcc-prod": "cron(0 0 * * ? *)",
            },
        ),
        BackupTier.MEDIUM: TierPolicy(
            cadence="monthly",
            default_schedule=MONTHLY_SCHEDULE,
            delete_after_days=30,
            cold_storage_after_days=120,
            selection_tag_value="Medium",
            environment_schedules={
                "dev": "cron(0 0 1 * ? *)",
                "staging": "cron(0 1 1 * ? *)",
                "prod": "cron(0 2 1 * ? *)",
                "gcc-prod": "cron(0 0 1 * ? *)",
            },
        ),
        BackupTier.LOW: TierPolicy(
            cadence="yearly",
            default_schedule=YEARLY_SCHEDULE,
            delete_after_days=365,
            cold_storage_after_days=120,
            selection_tag_value="Low",
            environment_schedules={
                "dev": "cron(0 0 1 1 ? *)",
                "staging": "cron(0 1 1 1 ? *)",
                "prod": "cron(0 2 1 1 ? *)",
                "gcc-prod": "cron(0 0 1 1 ? *)",
            },
        ),
    },
    cold_storage_environments=frozenset({"gcc-prod"}),
    protected_environments=frozenset({"platform"}),
)

LONG_TERM_POLICY = BackupPolicyConfig(
    name="long-term",
    tiers={
        BackupTier.HIGH: TierPolicy(
            cadence="daily",
            default_schedule=DAILY_SCHEDULE,
            delete_after_days=120,
            cold_storage_after_days=90,
            selection_tag_value="High",
            environment_schedules={
                "dev": "cron(0 3 * * ? *)",
                "staging": "cron(0 4 * * ? *)",
                "prod": "cron(0 5 * * ? *)",
            },
        ),
        BackupTier.MEDIUM: TierPolicy(
            cadence="monthly",
            default_schedule=MONTHLY_SCHEDULE,
            delete_after_days=365,
            cold_storage_after_days=60,
            selection_tag_value="Medium",
            environment_schedules={
                "dev": "cron(0 3 1 * ? *)",
                "staging": "cron(0 4 1 * ? *)",
                "prod": "cron(0 5 1 * ? *)",
            },
        ),
        BackupTier.LOW: TierPolicy(
            cadence="yearly",
            default_schedule=YEARLY_SCHEDULE,
            delete_after_days=1825,
            cold_storage_after_days=30,
            selection_tag_value="Low",
            environment_schedules={
                "dev": "cron(0 3 1 1 ? *)",
                "staging": "cron(0 4 1 1 ? *)",
                "prod": "cron(0 5 1 1 ? *)",
            },
        ),
    },
    # No environment transitions to cold storage unless the deployer opts in with with_sentinels()
    cold_storage_environments=frozenset(),
    protected_environments=frozenset({"platform"}),
)

WEEKLY_POLICY = BackupPolicyConfig(
    name="weekly",
    tiers={
        BackupTier.HIGH: TierPolicy(
            cadence="daily",
            default_schedule=DAILY_SCHEDULE,
            delete_after_days=7,
            selection_tag_value="high",
            environment_schedules={
                "dev": "cron(0 0 * * ? *)",
                "staging": "cron(0 0 * * ? *)",
                "prod": "cron(0 0 * * ? *)",
            },
        ),
        BackupTier.MEDIUM: TierPolicy(
            cadence="weekly",
            default_schedule=WEEKLY_SCHEDULE,
            delete_after_days=28,
            selection_tag_value="medium",
            environment_schedules={
                "dev": "cron(0 0 ? * SAT *)",
                "staging": "cron(0 0 ? * SAT *)",
                "prod": "cron(0 0 ? * SUN *)",
            },
        ),
        BackupTier.LOW: TierPolicy(
            cadence="monthly",
            default_schedule=MONTHLY_SCHEDULE,
            delete_after_days=90,
            selection_tag_value="low",
            environment_schedules={
                "dev": "cron(0 0 1 * ? *)",
                "staging": "cron(0 0 1 * ? *)",
                "prod": "cron(0 0 1 * ? *)",
            },
        ),
    },
    protected_environments=frozenset({"staging"}),
)

POLICY_VARIANTS = {
    GCC_POLICY.name: GCC_POLICY,
    LONG_TERM_POLICY.name: LONG_TERM_POLICY,
    WEEKLY_POLICY.name: WEEKLY_POLICY,
}

DEFAULT_POLICY_CONFIG = GCC_POLICY


def get_policy_config(name: str) -> BackupPolicyConfig:
    """Return the named policy variant

    Raises
    ------
    BackupPolicyError
        If no variant is registered under `name`
    """
    try:
        return POLICY_VARIANTS[name]
    except KeyError:
        raise BackupPolicyError(
            f"Unknown backup policy variant {name!r}. Known variants: {', '.join(sorted(POLICY_VARIANTS))}"
        )


def resolve(
        tier: Union[BackupTier, str],
        environment: str,
        config: BackupPolicyConfig = DEFAULT_POLICY_CONFIG
) -> ResolvedBackupPolicy:
    """Resolve the schedule, retention and cold storage transition for a tier in an environment

    Unknown environments are not an error. They get the tier's default schedule and no cold storage.

    Parameters
    ----------
    tier : Union[BackupTier, str]
        Backup tier, e.g. BackupTier.HIGH or "high"
    environment : str
        Deployment environment name, e.g. "dev"
    config : BackupPolicyConfig
        Policy variant to resolve against. Default is the `gcc` variant.

    Returns
    -------
    : ResolvedBackupPolicy
    """
    tier_policy = config.tier_policy(tier)
    schedule = tier_policy.environment_schedules.get(environment)
    if schedule is None:
        logger.debug(f"No {tier_policy.cadence} schedule configured for environment {environment!r} in "
                     f"{config.name}, using default {tier_policy.default_schedule}")
        schedule = tier_policy.default_schedule

    cold_storage_after_days = None
    if environment in config.cold_storage_environments:
        cold_storage_after_days = tier_policy.cold_storage_after_days

    return ResolvedBackupPolicy(
        schedule=schedule,
        delete_after_days=tier_policy.delete_after_days,
        cold_storage_after_days=cold_storage_after_days,
    )


def protect(environment: str, config: BackupPolicyConfig = DEFAULT_POLICY_CONFIG) -> bool:
    """True when vaults in `environment` should get the deletion prevention access policy"""
    return environment in config.protected_environments


def is_vault_protected(
        tier: Union[BackupTier, str],
        environment: str,
        config: BackupPolicyConfig = DEFAULT_POLICY_CONFIG
) -> bool:
    """Protection flag for the vault of a single tier"""
    return protect(environment, config) and BackupTier(tier) in config.protected_tiers


def validate_retention(
        policy: ResolvedBackupPolicy,
        tier: Optional[BackupTier] = None,
        environment: Optional[str] = None
):
    """Check a resolved policy against the AWS Backup lifecycle rules

    Recovery points moved to cold storage must stay there for at least 90 days before they can be deleted.

    Raises
    ------
    BackupPolicyError
        If the delete_after period is shorter than the cold storage transition plus the minimum residency
    """
    if policy.delete_after_days <= 0:
        raise BackupPolicyError(f"delete_after must be a positive number of days, got {policy.delete_after_days}",
                                tier=tier, environment=environment)
    if policy.cold_storage_after_days is None:
        return
    minimum = policy.cold_storage_after_days + MIN_COLD_STORAGE_RESIDENCY_DAYS
    if policy.delete_after_days < minimum:
        raise BackupPolicyError(
            f"delete_after of {policy.delete_after_days} days is shorter than the cold storage transition "
            f"({policy.cold_storage_after_days} days) plus the {MIN_COLD_STORAGE_RESIDENCY_DAYS} day minimum "
            f"cold storage residency",
            tier=tier,
            environment=environment,
        )


def _tier_policy_from_dict(tier: BackupTier, data: Mapping[str, Any]) -> TierPolicy:
    try:
        return TierPolicy(
            cadence=str(data.get("cadence", tier.value)),
            default_schedule=str(data["default_schedule"]),
            delete_after_days=int(data["delete_after_days"]),
            selection_tag_value=str(data.get("selection_tag_value", tier.value.capitalize())),
            environment_schedules={str(k): str(v) for k, v in data.get("environment_schedules", {}).items()},
            cold_storage_after_days=(
                int(data["cold_storage_after_days"]) if data.get("cold_storage_after_days") is not None else None
            ),
        )
    except KeyError as e:
        raise BackupPolicyError(f"Missing required key {e} in tier configuration", tier=tier)
    except (TypeError, ValueError, AttributeError) as e:
        raise BackupPolicyError(f"Invalid tier configuration: {e}", tier=tier)


def policy_config_from_dict(data: Mapping[str, Any]) -> BackupPolicyConfig:
    """Build a BackupPolicyConfig from JSON-like data, e.g. a block of CDK context

    Expected layout::

        {
            "name": "custom",
            "tiers": {
                "high": {"default_schedule": "cron(0 0 * * ? *)", "delete_after_days": 7,
                         "cold_storage_after_days": 120, "selection_tag_value": "High",
                         "environment_schedules": {"prod": "cron(0 2 * * ? *)"}},
                ...
            },
            "cold_storage_environments": ["gcc-prod"],
            "protected_environments": ["platform"],
            "protected_tiers": ["high", "medium", "low"]
        }

    Raises
    ------
    BackupPolicyError
        If the data is missing required keys or names an unknown tier
    """
    if not isinstance(data, Mapping):
        raise BackupPolicyError(f"Policy configuration must be a mapping, got {type(data).__name__}")
    if "tiers" not in data or not isinstance(data["tiers"], Mapping):
        raise BackupPolicyError("Policy configuration requires a 'tiers' mapping")

    tiers = {}
    for tier_name, tier_data in data["tiers"].items():
        try:
            tier = BackupTier(tier_name)
        except ValueError:
            raise BackupPolicyError(f"Unknown backup tier {tier_name!r}")
        tiers[tier] = _tier_policy_from_dict(tier, tier_data)

    return BackupPolicyConfig(
        name=str(data.get("name", "custom")),
        tiers=tiers,
        cold_storage_environments=data.get("cold_storage_environments", []),
        protected_environments=data.get("protected_environments", []),
        protected_tiers=data.get("protected_tiers", list(BackupTier)),
    )
