"""Tag helpers shared by the backup constructs"""
# Standard
from typing import Mapping, Optional
# Installed
from constructs import Construct
from aws_cdk import Tags
# Local
from tiered_backup.constructs.constants import DEFAULT_MANAGED_BY_TAG


def merge_tags(*tag_maps: Optional[Mapping[str, str]]) -> dict:
    """Merge tag maps left to right. Later maps win on key collisions and None entries are skipped.

    Returns
    -------
    : dict
        New dictionary with string keys and values
    """
    merged = {}
    for tag_map in tag_maps:
        if not tag_map:
            continue
        merged.update({str(k): str(v) for k, v in tag_map.items()})
    return merged


def default_tags(environment: str) -> dict:
    """Tags applied to every resource created for `environment`"""
    return {
        "Environment": environment,
        "ManagedBy": DEFAULT_MANAGED_BY_TAG,
    }


def apply_tags(scope: Construct, tags: Mapping[str, str]) -> None:
    """Add each tag to `scope` and everything below it in the construct tree"""
    for key, value in tags.items():
        Tags.of(scope).add(key, value)
