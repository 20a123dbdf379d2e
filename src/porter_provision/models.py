"""Descriptors and value objects shared by the provisioning stages."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Mapping, Optional, Tuple


class KeyNamespace(Enum):
    """Top-level S3 key namespaces for staged content."""
    TEMPLATE = "porter-template"
    DEPLOYMENT = "porter-deployment"


@dataclass(frozen=True)
class ServiceDescriptor:
    """Identity of the deployable unit."""
    name: str
    version: str


@dataclass(frozen=True)
class EnvironmentDescriptor:
    """A deployment environment and its template overrides.

    ``stack_definitions`` maps a region name to an override template path. The
    ``default_stack_definition`` applies to regions without their own entry.
    """
    name: str
    stack_definitions: Mapping[str, str] = field(default_factory=dict)
    default_stack_definition: str = ""

    def stack_definition_path(self, region_name: str) -> str:
        """Return the override template path for a region, or "" for none."""
        return self.stack_definitions.get(region_name) or self.default_stack_definition


@dataclass(frozen=True)
class RegionDescriptor:
    """Target region of one provisioning run."""
    name: str
    s3_bucket: str
    sse_kms_key_id: Optional[str] = None
    target_group_arns: Tuple[str, ...] = ()
    environment_variables: Mapping[str, str] = field(default_factory=dict)


def key_root(namespace: KeyNamespace, service: ServiceDescriptor,
             environment: EnvironmentDescriptor) -> str:
    """Key prefix ``<namespace>/<service>/<environment>/<version>``."""
    return f"{namespace.value}/{service.name}/{environment.name}/{service.version}"


@dataclass(frozen=True)
class StagedObject:
    """An object known to be present in S3 under its content digest."""
    bucket: str
    key: str
    digest: str


@dataclass(frozen=True)
class StackOperationInput:
    """Everything a create or update stack call needs from the pipeline."""
    environment: str
    region: str
    secrets_key: str
    secrets_location: str
    template_url: str

    def parameters(self) -> Dict[str, str]:
        """Stack parameters passed to CloudFormation."""
        return {
            "PorterEnvironment": self.environment,
            "PorterRegion": self.region,
            "PorterSecretsKey": self.secrets_key,
            "PorterSecretsLocation": self.secrets_location,
        }


@dataclass
class RegionProvisioningResult:
    """Caller-owned outcome of a region run. Only written on full success."""
    region: str
    stack_id: Optional[str] = None
