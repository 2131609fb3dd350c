"""Pydantic schemas for the session lifecycle.

This module provides typed data structures for:
- Deployment API requests and responses (Edgegap)
- Results handed back to callers
- Connection events consumed by the idle monitor

Usage:
    from skysession.schemas import DeployResult, DeploymentStatus
"""

from .edgegap import (
    CreateDeploymentRequest,
    CreateDeploymentResponse,
    DeploymentStatus,
    DeploymentUser,
    DeploymentUserData,
    PortMapping,
)
from .session import (
    AuthScheme,
    ConnectionEvent,
    ConnectionState,
    DeleteOutcome,
    DeployResult,
)

__all__ = [
    "AuthScheme",
    "ConnectionEvent",
    "ConnectionState",
    "CreateDeploymentRequest",
    "CreateDeploymentResponse",
    "DeleteOutcome",
    "DeployResult",
    "DeploymentStatus",
    "DeploymentUser",
    "DeploymentUserData",
    "PortMapping",
]
