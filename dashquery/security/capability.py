"""
Capability scope check.

Runs before any SQL: a capability limits a request to a set of connectors and
a set of datasets (tables). Token signing and verification happen upstream;
this module only enforces the decoded claims.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from loguru import logger

from dashquery.utils.errors import CapabilityError

_TABLE_LINE = re.compile(r"^\s*TABLE:\s*(.+?)\s*$", re.IGNORECASE)


@dataclass
class Capability:
    """Decoded capability claims."""
    org_id: Optional[str] = None
    allowed_actions: List[str] = field(default_factory=list)
    allowed_connector_ids: List[str] = field(default_factory=list)
    dataset_allowlist: List[str] = field(default_factory=list)

    @classmethod
    def from_claims(cls, claims: Dict[str, Any]) -> "Capability":
        return cls(
            org_id=claims.get("org_id"),
            allowed_actions=list(claims.get("allowed_actions") or []),
            allowed_connector_ids=[str(c) for c in claims.get("allowed_connector_ids") or []],
            dataset_allowlist=[str(d) for d in claims.get("dataset_allowlist") or []],
        )


def extract_schema_tables(schema_context: Optional[str]) -> List[str]:
    """
    Table names declared in a schema context.

    The context is a sequence of blank-line separated blocks, each starting
    with a ``TABLE: name`` line followed by ``COLUMNS: ...``.
    """
    if not schema_context:
        return []

    tables = []
    for block in re.split(r"\n\s*\n", schema_context):
        for line in block.splitlines():
            match = _TABLE_LINE.match(line)
            if match:
                tables.append(match.group(1))
                break
    return tables


def assert_capability_scope(
    capability: Optional[Capability],
    connector_id: Optional[str] = None,
    schema_context: Optional[str] = None,
) -> None:
    """
    Raise CapabilityError unless the connector and every schema table are in scope.

    No capability means no restriction. Tables match the dataset allowlist
    either by full name or by base name (``public.orders`` matches ``orders``),
    case-insensitively.
    """
    if capability is None:
        return

    allowlist = capability.allowed_connector_ids or []
    if allowlist:
        if not connector_id:
            raise CapabilityError("Capability token requires a connector scope.")
        if str(connector_id) not in allowlist:
            logger.warning(f"Connector {connector_id} rejected by capability scope")
            raise CapabilityError("Connector not allowed by capability token.")

    allowed = {item.lower() for item in capability.dataset_allowlist or []}
    if not allowed:
        return

    for table in extract_schema_tables(schema_context):
        normalized = table.lower()
        base = normalized.split(".")[-1]
        if normalized not in allowed and base not in allowed:
            logger.warning(f"Dataset {table} rejected by capability scope")
            raise CapabilityError(f'Dataset "{table}" is not allowed by capability token.')
