"""Deployment-specific mutation of a resolved template.

Mutation runs in a fixed order: description, mandatory parameters and
resources (added only where the template lacks them), then the
resource-mapping transforms. The first failure aborts the stage; the caller
discards the partially mutated template.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Sequence

from porter_provision import __version__
from porter_provision.cfn.mandatory import (
    INSTANCE_PROFILE,
    mandatory_parameters,
    mandatory_resources,
)
from porter_provision.cfn.template import Template
from porter_provision.errors import MutationError
from porter_provision.models import (
    EnvironmentDescriptor,
    RegionDescriptor,
    ServiceDescriptor,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MutationContext:
    """What a mapping rule may read about the deployment."""
    service: ServiceDescriptor
    environment: EnvironmentDescriptor
    region: RegionDescriptor

    def environment_variables(self) -> Dict[str, str]:
        variables = {
            "PORTER_SERVICE_NAME": self.service.name,
            "PORTER_SERVICE_VERSION": self.service.version,
            "PORTER_ENVIRONMENT": self.environment.name,
            "PORTER_REGION": self.region.name,
        }
        variables.update(self.region.environment_variables)
        return variables


RuleFunc = Callable[[MutationContext, str, Dict[str, Any]], bool]


@dataclass(frozen=True)
class MapResource:
    """A named rule applied to every resource of its transform's type."""
    name: str
    func: RuleFunc

    def __call__(self, context: MutationContext, logical_id: str, resource: Dict[str, Any]) -> bool:
        return self.func(context, logical_id, resource)


def attach_target_groups(context: MutationContext, logical_id: str, resource: Dict[str, Any]) -> bool:
    if not context.region.target_group_arns:
        return True

    properties = resource.setdefault("Properties", {})
    arns = properties.setdefault("TargetGroupARNs", [])
    if not isinstance(arns, list):
        logger.error(f"{logical_id}.TargetGroupARNs is not a list")
        return False
    for arn in context.region.target_group_arns:
        if arn not in arns:
            arns.append(arn)
    return True


def link_instance_profile(context: MutationContext, logical_id: str, resource: Dict[str, Any]) -> bool:
    properties = resource.setdefault("Properties", {})
    properties.setdefault("IamInstanceProfile", {"Ref": INSTANCE_PROFILE})
    return True


def inject_container_environment(context: MutationContext, logical_id: str,
                                 resource: Dict[str, Any]) -> bool:
    containers = resource.get("Properties", {}).get("ContainerDefinitions", [])
    if not isinstance(containers, list):
        logger.error(f"{logical_id}.ContainerDefinitions is not a list")
        return False

    for container in containers:
        environment = container.setdefault("Environment", [])
        defined = {pair.get("Name") for pair in environment}
        for name, value in sorted(context.environment_variables().items()):
            if name not in defined:
                environment.append({"Name": name, "Value": value})
    return True


def inject_function_environment(context: MutationContext, logical_id: str,
                                resource: Dict[str, Any]) -> bool:
    properties = resource.setdefault("Properties", {})
    variables = properties.setdefault("Environment", {}).setdefault("Variables", {})
    if not isinstance(variables, dict):
        logger.error(f"{logical_id}.Environment.Variables is not an object")
        return False
    for name, value in context.environment_variables().items():
        variables.setdefault(name, value)
    return True


DEFAULT_TRANSFORMS: Mapping[str, Sequence[MapResource]] = {
    "AWS::AutoScaling::AutoScalingGroup": [
        MapResource("attach_target_groups", attach_target_groups),
    ],
    "AWS::AutoScaling::LaunchConfiguration": [
        MapResource("link_instance_profile", link_instance_profile),
    ],
    "AWS::ECS::TaskDefinition": [
        MapResource("inject_environment", inject_container_environment),
    ],
    "AWS::Lambda::Function": [
        MapResource("inject_environment", inject_function_environment),
    ],
}


class TemplateMutator:
    """Applies description, mandatory resources and mapping transforms."""

    def __init__(self, environment: EnvironmentDescriptor, region: RegionDescriptor,
                 transforms: Mapping[str, Sequence[MapResource]] = DEFAULT_TRANSFORMS):
        self.environment = environment
        self.region = region
        self.transforms = transforms

    def mutate(self, template: Template, service: ServiceDescriptor) -> bool:
        try:
            template.description = f"{service.name} (powered by porter {__version__})"
            self.ensure_resources(template, service)
            self.map_resources(template, MutationContext(service, self.environment, self.region))
        except MutationError as e:
            logger.error(f"Template mutation failed in {e.operation}: {e.cause}")
            return False
        return True

    def ensure_resources(self, template: Template, service: ServiceDescriptor) -> None:
        """Add mandatory parameters and resources the template does not define."""
        for name, definition in mandatory_parameters().items():
            if name in template.parameters:
                logger.debug(f"Keeping user-defined parameter {name}")
                continue
            template.parameters[name] = definition

        for logical_id, definition in mandatory_resources(service).items():
            if logical_id in template.resources:
                logger.info(f"Keeping user-defined resource {logical_id}")
                continue
            template.resources[logical_id] = definition

    def map_resources(self, template: Template, context: MutationContext) -> None:
        """Run every transform's rules, in order, over its resources.

        :raises MutationError: tagged with the failing transform and rule.
        """
        for transform_name, rules in self.transforms.items():
            for rule in rules:
                for logical_id, resource in list(template.resources_of_type(transform_name)):
                    try:
                        ok = rule(context, logical_id, resource)
                    except Exception as e:
                        raise MutationError(transform_name, e, rule=rule.name) from e
                    if not ok:
                        raise MutationError(transform_name, f"rejected {logical_id}", rule=rule.name)
