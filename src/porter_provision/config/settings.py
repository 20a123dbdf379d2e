# src/porter_provision/config/settings.py
from functools import lru_cache
from typing import Optional

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Single source of truth for process-level provisioning settings.

    Configuration precedence:
    1. Environment variables (highest priority)
    2. .env file (if exists)
    3. Default values in this class (lowest priority)

    Usage:
        from porter_provision.config.settings import get_settings
        settings = get_settings()
        mirror = settings.template_mirror_path
    """

    # Deployment Mode
    deployment_mode: str = Field(
        default="aws-prod",
        description="Deployment mode: local-dev, aws-mock, or aws-prod"
    )

    # AWS Core Settings
    aws_region: str = Field(
        default="us-east-1",
        alias="AWS_DEFAULT_REGION"
    )

    aws_access_key_id: Optional[str] = Field(
        default=None,
        alias="AWS_ACCESS_KEY_ID"
    )

    aws_secret_access_key: Optional[str] = Field(
        default=None,
        alias="AWS_SECRET_ACCESS_KEY"
    )

    aws_endpoint_url: Optional[str] = Field(
        default=None,
        alias="AWS_ENDPOINT_URL"
    )

    assume_role_arn: Optional[str] = Field(
        default=None,
        description="Role assumed for every provisioning call, if set"
    )

    # Local scratch files
    payload_path: str = Field(
        default=".porter-tmp/payload.tar",
        description="Pre-built service payload, removed after each run"
    )

    template_mirror_path: str = Field(
        default=".porter-tmp/CloudFormationTemplate.json",
        description="Local copy of the last serialized template"
    )

    secrets_path: str = Field(
        default=".porter-tmp/secrets.env",
        description="Optional secrets bundle staged next to the payload"
    )

    state_path: str = Field(
        default=".porter-tmp/provision_output.json",
        description="Where the CLI records provisioned stack ids"
    )

    config_path: str = Field(
        default=".porter/config.json",
        description="Service config file"
    )

    # S3
    s3_url_base: str = Field(
        default="https://s3.amazonaws.com",
        description="Base of the public URL handed to CloudFormation"
    )

    payload_storage_class: str = Field(
        default="STANDARD_IA",
        description="Storage class for staged payloads"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )

    @field_validator('deployment_mode')
    @classmethod
    def validate_deployment_mode(cls, v):
        """Validate deployment mode is one of the allowed values."""
        valid_modes = ["local-dev", "aws-mock", "aws-prod"]
        if v not in valid_modes:
            raise ValueError(f"Invalid deployment_mode: {v}. Must be one of {valid_modes}")
        return v

    @field_validator('aws_endpoint_url')
    @classmethod
    def set_endpoint_url_based_on_mode(cls, v, info: ValidationInfo):
        """Auto-set endpoint URL based on deployment mode if not explicitly provided."""
        if v is None and info.data.get('deployment_mode') in ["local-dev", "aws-mock"]:
            return "http://localhost:5000"
        return v

    @field_validator('aws_access_key_id', 'aws_secret_access_key')
    @classmethod
    def set_mock_credentials_for_local_modes(cls, v, info: ValidationInfo):
        """Auto-set mock credentials for local modes if not provided."""
        if v is None and info.data.get('deployment_mode') in ["local-dev", "aws-mock"]:
            return "mock"
        return v

    @field_validator('s3_url_base')
    @classmethod
    def strip_trailing_slash(cls, v):
        return v.rstrip('/')

    @property
    def is_mock(self) -> bool:
        return self.deployment_mode in ["local-dev", "aws-mock"]

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_prefix="PORTER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
        validate_default=True,
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    This ensures we only create one Settings instance per process.
    """
    return Settings()
