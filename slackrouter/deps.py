# =============================================================================
# Dependency Container
# =============================================================================
# Resolves router configuration from the environment and provides lazy-loaded
# AWS clients for secret lookup. The Lambda entry point builds its routers
# from here instead of reading os.environ itself.
#
# Signing secret sources, first match wins:
# - SLACK_SIGNING_SECRET            plain value
# - SLACK_SIGNING_SECRET_ARN        Secrets Manager secret id
# - SLACK_SIGNING_SECRET_PARAMETER  SSM SecureString parameter name
# =============================================================================

import json
import logging
import os
from dataclasses import dataclass, field
from functools import cached_property
from typing import Any, Dict, Mapping, Optional

import boto3
from botocore.exceptions import ClientError

from slackrouter.errors import RouterConfigError

logger = logging.getLogger(__name__)

DEFAULT_REGION = "us-east-1"
SECRET_JSON_KEY = "signing_secret"


def env_flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    """Router configuration as read from the environment."""
    signing_secret: str = ""
    signing_secret_arn: str = ""
    signing_secret_parameter: str = ""
    insecure_skip_verification: bool = False
    verbose_response: bool = False
    region: str = DEFAULT_REGION

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        return cls(
            signing_secret=env.get("SLACK_SIGNING_SECRET", ""),
            signing_secret_arn=env.get("SLACK_SIGNING_SECRET_ARN", ""),
            signing_secret_parameter=env.get("SLACK_SIGNING_SECRET_PARAMETER", ""),
            insecure_skip_verification=env_flag(env.get("SLACK_INSECURE_SKIP_VERIFICATION")),
            verbose_response=env_flag(env.get("SLACK_VERBOSE_RESPONSE")),
            region=env.get("AWS_REGION") or DEFAULT_REGION,
        )

    @property
    def has_secret_source(self) -> bool:
        return bool(self.signing_secret or self.signing_secret_arn or self.signing_secret_parameter)


@dataclass
class Deps:
    """
    Dependency container for the Lambda entry point.

    AWS clients are created on first access, so a plain-secret deployment
    never touches boto3.

    Usage:
        deps = get_deps()
        router = eventrouter.Router(**deps.router_options())
    """
    settings: Settings = field(default_factory=Settings.from_env)

    # ==========================================================================
    # AWS Clients (lazy-loaded)
    # ==========================================================================

    @cached_property
    def secretsmanager(self):
        """Secrets Manager client."""
        return boto3.client("secretsmanager", region_name=self.settings.region)

    @cached_property
    def ssm(self):
        """SSM client (Parameter Store)."""
        return boto3.client("ssm", region_name=self.settings.region)

    # ==========================================================================
    # Configuration
    # ==========================================================================

    @cached_property
    def signing_secret(self) -> str:
        """The signing secret, or "" when no source is configured.

        Raises:
            RouterConfigError: a configured source could not be read
        """
        settings = self.settings
        if settings.signing_secret:
            return settings.signing_secret
        if settings.signing_secret_arn:
            return self._secret_from_secretsmanager(settings.signing_secret_arn)
        if settings.signing_secret_parameter:
            return self._secret_from_ssm(settings.signing_secret_parameter)
        return ""

    def _secret_from_secretsmanager(self, secret_id: str) -> str:
        try:
            response = self.secretsmanager.get_secret_value(SecretId=secret_id)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "Unknown")
            logger.error(f"Failed to read signing secret from Secrets Manager: {code}")
            raise RouterConfigError(f"cannot read signing secret {secret_id}: {code}") from e

        value = response.get("SecretString") or ""
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            return value
        if isinstance(parsed, dict):
            secret = parsed.get(SECRET_JSON_KEY)
            if not isinstance(secret, str) or not secret:
                raise RouterConfigError(f"secret {secret_id} has no \"{SECRET_JSON_KEY}\" key")
            return secret
        return value

    def _secret_from_ssm(self, name: str) -> str:
        try:
            response = self.ssm.get_parameter(Name=name, WithDecryption=True)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "Unknown")
            logger.error(f"Failed to read signing secret from SSM: {code}")
            raise RouterConfigError(f"cannot read signing secret parameter {name}: {code}") from e
        return response.get("Parameter", {}).get("Value") or ""

    def router_options(self) -> Dict[str, Any]:
        """Keyword arguments accepted by both router constructors."""
        settings = self.settings
        if settings.insecure_skip_verification:
            if settings.has_secret_source:
                raise RouterConfigError(
                    "both a signing secret and SLACK_INSECURE_SKIP_VERIFICATION are configured"
                )
            return {
                "insecure_skip_verification": True,
                "verbose_response": settings.verbose_response,
            }
        return {
            "signing_secret": self.signing_secret or None,
            "verbose_response": settings.verbose_response,
        }


def create_deps(settings: Optional[Settings] = None) -> Deps:
    """Create a new Deps instance."""
    return Deps(settings=settings or Settings.from_env())


# Process-wide instance, reused across warm Lambda invocations
_global_deps: Optional[Deps] = None


def get_deps() -> Deps:
    """Get or create the global Deps instance."""
    global _global_deps
    if _global_deps is None:
        _global_deps = create_deps()
    return _global_deps


def reset_deps() -> None:
    """Drop the global instance so the next get_deps() re-reads the environment."""
    global _global_deps
    _global_deps = None
