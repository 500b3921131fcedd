"""Host-platform integration: node manifests and credential types."""

from hooknodes.integrations.credentials import (
    GITLAB_CREDENTIALS,
    WEWORK_CREDENTIALS,
    GitLabCredentials,
    WeworkBotCredentials,
    verify_gitlab_credentials,
    verify_wework_credentials,
)
from hooknodes.integrations.manifest import (
    CredentialRequirement,
    FieldDefinition,
    FieldOption,
    FieldType,
    NodeManifest,
)

__all__ = [
    # Credentials
    "GITLAB_CREDENTIALS",
    "WEWORK_CREDENTIALS",
    "GitLabCredentials",
    "WeworkBotCredentials",
    "verify_gitlab_credentials",
    "verify_wework_credentials",
    # Manifest
    "CredentialRequirement",
    "FieldDefinition",
    "FieldOption",
    "FieldType",
    "NodeManifest",
]
