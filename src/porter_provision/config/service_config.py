#####################################
# --- Service config file models --- #
#####################################

import logging
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import (
    BaseModel,
    Field,
    ValidationError,
    model_validator
)

from porter_provision.errors import LocalIOError
from porter_provision.models import (
    EnvironmentDescriptor,
    RegionDescriptor,
    ServiceDescriptor,
)

logger = logging.getLogger(__name__)


class RegionConfig(BaseModel):
    """One region an environment deploys to."""
    name: str = Field(min_length=1, json_schema_extra={"example": "us-west-2"})
    s3_bucket: str = Field(min_length=1, description="Bucket staged content goes to.")
    sse_kms_key_id: Optional[str] = Field(
        None,
        description="KMS key used to encrypt the staged template and secrets.",
    )
    stack_definition_path: str = Field(
        "",
        description="Override template for this region only.",
    )
    target_group_arns: List[str] = Field(default_factory=list)
    environment_variables: Dict[str, str] = Field(default_factory=dict)

    def to_descriptor(self) -> RegionDescriptor:
        return RegionDescriptor(
            name=self.name,
            s3_bucket=self.s3_bucket,
            sse_kms_key_id=self.sse_kms_key_id,
            target_group_arns=tuple(self.target_group_arns),
            environment_variables=dict(self.environment_variables),
        )


class EnvironmentConfig(BaseModel):
    """A deployment environment such as stage or prod."""
    name: str = Field(min_length=1, json_schema_extra={"example": "prod"})
    stack_definition_path: str = Field(
        "",
        description="Override template used by regions without their own.",
    )
    regions: List[RegionConfig] = Field(min_length=1)

    @model_validator(mode="after")
    def check_region_names_are_unique(self) -> "EnvironmentConfig":
        names = [region.name for region in self.regions]
        if len(names) != len(set(names)):
            raise ValueError(f"duplicate region in environment {self.name}: {names}")
        return self

    def get_region(self, region_name: str) -> RegionConfig:
        for region in self.regions:
            if region.name == region_name:
                return region
        raise KeyError(f"region {region_name} is not configured for environment {self.name}")

    def to_descriptor(self) -> EnvironmentDescriptor:
        return EnvironmentDescriptor(
            name=self.name,
            stack_definitions={
                region.name: region.stack_definition_path
                for region in self.regions
                if region.stack_definition_path
            },
            default_stack_definition=self.stack_definition_path,
        )


class ServiceConfig(BaseModel):
    """The service config file."""
    service_name: str = Field(min_length=1)
    service_version: str = Field(min_length=1)
    environments: List[EnvironmentConfig] = Field(min_length=1)

    @model_validator(mode="after")
    def check_environment_names_are_unique(self) -> "ServiceConfig":
        names = [environment.name for environment in self.environments]
        if len(names) != len(set(names)):
            raise ValueError(f"duplicate environment: {names}")
        return self

    def get_environment(self, environment_name: str) -> EnvironmentConfig:
        for environment in self.environments:
            if environment.name == environment_name:
                return environment
        raise KeyError(f"environment {environment_name} is not configured")

    def service(self) -> ServiceDescriptor:
        return ServiceDescriptor(name=self.service_name, version=self.service_version)


def load_service_config(path: str) -> ServiceConfig:
    """Read and validate the service config file.

    :param path: path to the JSON config file.
    :raises LocalIOError: if the file cannot be read.
    :raises pydantic.ValidationError: if the contents are invalid.
    """
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise LocalIOError(f"read config {path}", e) from e

    try:
        return ServiceConfig.model_validate_json(raw)
    except ValidationError as e:
        logger.error(f"Invalid service config {path}: {e}")
        raise
