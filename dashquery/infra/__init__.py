"""
Infrastructure - external database access
"""

from dashquery.infra.database import QueryExecutor, build_engine_url, build_connect_args

__all__ = ["QueryExecutor", "build_engine_url", "build_connect_args"]
