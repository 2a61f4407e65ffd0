"""Feature flag resolution with deterministic percentage rollout."""

import uuid
from typing import Optional

import structlog

logger = structlog.get_logger()

_UINT32 = 2 ** 32


def _to_int32(value: int) -> int:
    value &= _UINT32 - 1
    return value - _UINT32 if value >= 2 ** 31 else value


def rollout_hash(tenant_id: str) -> int:
    """Rolling polynomial hash (h * 31 + code unit) wrapped to signed 32-bit each step.

    Code units are UTF-16, so ids hash identically across runtimes that
    index strings that way.
    """
    h = 0
    data = str(tenant_id).encode("utf-16-le")
    for i in range(0, len(data), 2):
        code_unit = data[i] | (data[i + 1] << 8)
        h = _to_int32(h * 31 + code_unit)
    return h


def rollout_bucket(tenant_id: str) -> int:
    """Deterministic bucket in [0, 99] for a tenant id."""
    return abs(rollout_hash(tenant_id)) % 100


def resolve_flag(flag, override, tenant_id: str) -> bool:
    """Resolve a flag for one tenant.

    Order: explicit override, then global_enabled, then bucket < rollout_percentage.
    """
    if flag is None:
        return False
    if override is not None:
        return bool(override.enabled)
    if flag.global_enabled:
        return True
    if flag.rollout_percentage and flag.rollout_percentage > 0:
        return rollout_bucket(tenant_id) < flag.rollout_percentage
    return False


def is_flag_enabled(store, org_id: uuid.UUID, flag_name: str) -> bool:
    """Look up a flag and its override for an organisation and resolve it."""
    flag = store.get_flag(flag_name)
    if flag is None:
        logger.debug("feature_flag_unknown", flag=flag_name)
        return False
    override: Optional[object] = store.get_flag_override(flag.id, org_id)
    enabled = resolve_flag(flag, override, str(org_id))
    logger.debug("feature_flag_resolved", flag=flag_name, org_id=str(org_id),
                 enabled=enabled, overridden=override is not None)
    return enabled
