"""In-memory CloudFormation template."""
import json
import logging
from typing import Any, Dict, Iterable, Iterator, List, Tuple

from porter_provision.errors import TemplateParseError, TemplateResolutionError

logger = logging.getLogger(__name__)

FORMAT_VERSION = "2010-09-09"

# Sections with a typed attribute on Template. Everything else is kept verbatim.
KNOWN_SECTIONS = ("Description", "Parameters", "Resources", "Outputs")


class Template:
    """A CloudFormation template document, mutated in place by the pipeline."""

    def __init__(self, description: str = "", parameters: Dict[str, Any] = None,
                 resources: Dict[str, Any] = None, outputs: Dict[str, Any] = None,
                 sections: Dict[str, Any] = None):
        self.description = description
        self.parameters = parameters if parameters is not None else {}
        self.resources = resources if resources is not None else {}
        self.outputs = outputs if outputs is not None else {}
        self.sections = sections if sections is not None else {"AWSTemplateFormatVersion": FORMAT_VERSION}

    @classmethod
    def from_document(cls, document: Any) -> "Template":
        """Build a template from a decoded JSON document.

        :raises TemplateParseError: if the document does not have template shape.
        """
        if not isinstance(document, dict):
            raise TemplateParseError("decode template", f"expected an object, got {type(document).__name__}")

        description = document.get("Description", "")
        if not isinstance(description, str):
            raise TemplateParseError("decode template", "Description must be a string")

        mappings = {}
        for section in ("Parameters", "Resources", "Outputs"):
            value = document.get(section, {})
            if not isinstance(value, dict):
                raise TemplateParseError("decode template", f"{section} must be an object")
            mappings[section] = value

        sections = {k: v for k, v in document.items() if k not in KNOWN_SECTIONS}
        sections.setdefault("AWSTemplateFormatVersion", FORMAT_VERSION)
        return cls(
            description=description,
            parameters=mappings["Parameters"],
            resources=mappings["Resources"],
            outputs=mappings["Outputs"],
            sections=sections,
        )

    @classmethod
    def loads(cls, raw: str) -> "Template":
        try:
            document = json.loads(raw)
        except json.JSONDecodeError as e:
            raise TemplateParseError("json.loads", e) from e
        return cls.from_document(document)

    def to_document(self) -> Dict[str, Any]:
        document = dict(self.sections)
        document["Description"] = self.description
        if self.parameters:
            document["Parameters"] = self.parameters
        document["Resources"] = self.resources
        if self.outputs:
            document["Outputs"] = self.outputs
        return document

    def serialize(self) -> bytes:
        """Serialize deterministically so identical templates digest identically."""
        return json.dumps(self.to_document(), sort_keys=True, separators=(",", ":")).encode("utf-8")

    def resources_of_type(self, resource_type: str) -> Iterator[Tuple[str, Dict[str, Any]]]:
        """Yield ``(logical_id, resource)`` pairs of one type, ordered by logical id."""
        for logical_id in sorted(self.resources):
            resource = self.resources[logical_id]
            if resource.get("Type") == resource_type:
                yield logical_id, resource

    def parse_resources(self, provided_parameters: Iterable[str] = (),
                        provided_resources: Iterable[str] = ()) -> None:
        """Resolve the resource graph.

        Every resource must declare a ``Type``, and every ``DependsOn``,
        ``Ref`` and ``Fn::GetAtt`` must point at something the template
        declares, or at one of the ``provided_parameters`` and
        ``provided_resources`` that mutation adds later.

        :raises TemplateResolutionError: on the first unresolvable reference.
        """
        parameters = set(self.parameters).union(provided_parameters)
        resources = set(self.resources).union(provided_resources)

        for logical_id, resource in self.resources.items():
            if not isinstance(resource, dict):
                raise TemplateResolutionError(f"resource {logical_id}", "definition must be an object")
            if not isinstance(resource.get("Type"), str) or not resource["Type"]:
                raise TemplateResolutionError(f"resource {logical_id}", "missing Type")

            for dependency in _as_list(resource.get("DependsOn", [])):
                if not isinstance(dependency, str):
                    raise TemplateResolutionError(
                        f"resource {logical_id}", "DependsOn entries must be resource names")
                if dependency not in resources:
                    raise TemplateResolutionError(
                        f"resource {logical_id}", f"DependsOn unknown resource {dependency}")

        for section, body in (("Resources", self.resources), ("Outputs", self.outputs)):
            for kind, target in _references(body):
                if kind == "Ref":
                    known = target.startswith("AWS::") or target in parameters or target in resources
                else:
                    known = target in resources
                if not known:
                    raise TemplateResolutionError(f"{section}", f"{target} of unknown {kind}")

        logger.debug(f"Resolved {len(self.resources)} resources")


def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else [value]


def _references(node: Any) -> Iterator[Tuple[str, str]]:
    """Yield ``("Ref", name)`` and ``("Fn::GetAtt", name)`` found anywhere in ``node``."""
    if isinstance(node, dict):
        for key, value in node.items():
            if key == "Ref" and isinstance(value, str):
                yield "Ref", value
            elif key == "Fn::GetAtt":
                if isinstance(value, list) and value and isinstance(value[0], str):
                    yield "Fn::GetAtt", value[0]
                elif isinstance(value, str):
                    yield "Fn::GetAtt", value.split(".", 1)[0]
            else:
                yield from _references(value)
    elif isinstance(node, list):
        for item in node:
            yield from _references(item)
