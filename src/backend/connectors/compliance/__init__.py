from .client import ComplianceHttpError, fetch_profile, fetch_url, list_profiles, publish, server_version
from .config import ComplianceConfig, get_compliance_config

__all__ = [
    "ComplianceConfig",
    "ComplianceHttpError",
    "fetch_profile",
    "fetch_url",
    "get_compliance_config",
    "list_profiles",
    "publish",
    "server_version",
]
