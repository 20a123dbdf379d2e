import json

from porter_provision.cfn.assemble import TemplateAssembler
from porter_provision.cfn.mandatory import MANDATORY_RESOURCE_NAMES, mandatory_resources
from porter_provision.models import ServiceDescriptor


def write_template(path, document):
    path.write_text(json.dumps(document))
    return str(path)


def test_no_override_starts_from_empty_template():
    template = TemplateAssembler().assemble("")

    assert template is not None
    assert template.resources == {}


def test_override_is_loaded_and_resolved(tmp_path):
    path = write_template(tmp_path / "stack.json", {
        "Resources": {"Foo": {"Type": "AWS::SQS::Queue", "Properties": {"QueueName": "foo"}}},
    })

    template = TemplateAssembler().assemble(path)

    assert template.resources["Foo"]["Properties"]["QueueName"] == "foo"


def test_missing_override_fails(tmp_path):
    assert TemplateAssembler().assemble(str(tmp_path / "missing.json")) is None


def test_malformed_override_fails(tmp_path):
    path = tmp_path / "stack.json"
    path.write_text("{\"Resources\": ")

    assert TemplateAssembler().assemble(str(path)) is None


def test_unresolvable_override_fails(tmp_path):
    path = write_template(tmp_path / "stack.json", {
        "Resources": {"Foo": {"Type": "AWS::SQS::Queue", "DependsOn": "Bar"}},
    })

    assert TemplateAssembler().assemble(path) is None


def test_override_may_reference_mandatory_names(tmp_path):
    path = write_template(tmp_path / "stack.json", {
        "Resources": {
            "Queue": {
                "Type": "AWS::SQS::Queue",
                "Properties": {"QueueName": {"Ref": "PorterEnvironment"}},
            },
            "Launch": {
                "Type": "AWS::AutoScaling::LaunchConfiguration",
                "Properties": {"IamInstanceProfile": {"Ref": "InstanceProfile"}},
            },
        },
    })

    template = TemplateAssembler().assemble(path)

    assert template is not None
    assert set(template.resources) == {"Queue", "Launch"}


def test_object_depends_on_fails_assembly(tmp_path):
    path = write_template(tmp_path / "stack.json", {
        "Resources": {"Foo": {"Type": "AWS::SQS::Queue", "DependsOn": {"x": 1}}},
    })

    assert TemplateAssembler().assemble(path) is None


def test_mandatory_resource_names_match_mandatory_resources():
    service = ServiceDescriptor(name="svc", version="1.0")

    assert set(MANDATORY_RESOURCE_NAMES) == set(mandatory_resources(service))
