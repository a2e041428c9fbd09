"""
Gateway module: Orchestration of routing, dispatch, and health checks.

Key exports:
- GatewayCore: Routes requests, dispatches with bounded failover, records stats
- CompletionResult: Successful completion plus routing explanation
- HealthChecker: Concurrent, isolated connectivity checks
"""

from model_gateway.gateway.core import (
    EXPLICIT_STRATEGY,
    CompletionResult,
    GatewayCore,
)
from model_gateway.gateway.health import HealthChecker

__all__ = [
    "GatewayCore",
    "CompletionResult",
    "EXPLICIT_STRATEGY",
    "HealthChecker",
]
