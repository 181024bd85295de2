from dashquery.security.capability import Capability, assert_capability_scope, extract_schema_tables

__all__ = ["Capability", "assert_capability_scope", "extract_schema_tables"]
