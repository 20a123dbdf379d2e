"""Parameters and resources every provisioned stack carries."""
import copy
from typing import Any, Dict

from porter_provision.models import ServiceDescriptor

INSTANCE_ROLE = "InstanceRole"
INSTANCE_PROFILE = "InstanceProfile"
INSTANCE_SECURITY_GROUP = "InstanceSecurityGroup"
MANDATORY_RESOURCE_NAMES = (INSTANCE_ROLE, INSTANCE_PROFILE, INSTANCE_SECURITY_GROUP)

# Stack parameters filled from StackOperationInput.parameters()
MANDATORY_PARAMETERS: Dict[str, Dict[str, Any]] = {
    "PorterEnvironment": {
        "Type": "String",
        "Description": "Environment the stack belongs to",
    },
    "PorterRegion": {
        "Type": "String",
        "Description": "Region the stack was provisioned in",
    },
    "PorterSecretsKey": {
        "Type": "String",
        "Default": "",
        "Description": "S3 key of the secrets bundle",
    },
    "PorterSecretsLocation": {
        "Type": "String",
        "Default": "",
        "Description": "Bucket holding the secrets bundle",
    },
}


def mandatory_parameters() -> Dict[str, Dict[str, Any]]:
    return copy.deepcopy(MANDATORY_PARAMETERS)


def mandatory_resources(service: ServiceDescriptor) -> Dict[str, Dict[str, Any]]:
    """Baseline IAM and networking scaffolding for ``service``."""
    tags = [
        {"Key": "porter:service", "Value": service.name},
        {"Key": "porter:version", "Value": service.version},
    ]
    return {
        INSTANCE_ROLE: {
            "Type": "AWS::IAM::Role",
            "Properties": {
                "AssumeRolePolicyDocument": {
                    "Version": "2012-10-17",
                    "Statement": [{
                        "Effect": "Allow",
                        "Principal": {"Service": ["ec2.amazonaws.com"]},
                        "Action": ["sts:AssumeRole"],
                    }],
                },
                "Path": "/",
                "Tags": tags,
            },
        },
        INSTANCE_PROFILE: {
            "Type": "AWS::IAM::InstanceProfile",
            "Properties": {
                "Path": "/",
                "Roles": [{"Ref": INSTANCE_ROLE}],
            },
        },
        INSTANCE_SECURITY_GROUP: {
            "Type": "AWS::EC2::SecurityGroup",
            "Properties": {
                "GroupDescription": f"{service.name} instances",
                "Tags": tags,
            },
        },
    }
