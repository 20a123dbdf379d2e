"""Provisioning of one service stack in a single region.

The run is strictly sequential and stops at the first failing stage:

1. stage the service payload
2. stage the secrets bundle
3. assemble, mutate and serialize the template, mirroring it locally
4. stage the template
5. create or update the stack
6. record the stack id

Every stage logs its own failure. Content already staged stays in S3: it is
content-addressed, so a later run reuses it.
"""
import logging
from pathlib import Path
from typing import Any, Optional

from porter_provision.cfn.assemble import TemplateAssembler
from porter_provision.cfn.mutate import TemplateMutator
from porter_provision.config.settings import Settings, get_settings
from porter_provision.models import (
    EnvironmentDescriptor,
    KeyNamespace,
    RegionDescriptor,
    RegionProvisioningResult,
    ServiceDescriptor,
    StackOperationInput,
    StagedObject,
    key_root,
)
from porter_provision.provision.dispatch import StackDispatcher
from porter_provision.provision.secrets import SecretsStager
from porter_provision.s3.stager import ContentAddressedStager, object_url
from porter_provision.utils.decorators import log_stage
from porter_provision.utils.scratch import removing

logger = logging.getLogger(__name__)


class RegionProvisioner:
    """Creates or updates a service's CloudFormation stack in one region."""

    def __init__(self, service: ServiceDescriptor, environment: EnvironmentDescriptor,
                 region: RegionDescriptor, dispatcher: StackDispatcher,
                 s3_client: Any, cfn_client: Any,
                 settings: Optional[Settings] = None,
                 assembler: Optional[TemplateAssembler] = None,
                 mutator: Optional[TemplateMutator] = None):
        self.service = service
        self.environment = environment
        self.region = region
        self.dispatcher = dispatcher
        self.cfn_client = cfn_client
        self.settings = settings or get_settings()

        self.stager = ContentAddressedStager(s3_client)
        self.assembler = assembler or TemplateAssembler()
        self.mutator = mutator or TemplateMutator(environment, region)
        self.secrets_stager = SecretsStager(self.stager, service, environment, region,
                                            self.settings.secrets_path)

    def provision(self, result: RegionProvisioningResult) -> bool:
        """Run every stage; write the stack id into ``result`` only on full success."""
        logger.info(f"Provisioning {self.service.name} {self.service.version} "
                    f"({self.environment.name}) in {self.region.name}")

        payload = self.stage_payload()
        if payload is None:
            return False

        secrets = self.secrets_stager.stage(payload.digest)
        if secrets is None:
            return False
        secrets_key, secrets_location = secrets

        template_bytes = self.create_template()
        if template_bytes is None:
            return False

        template = self.stage_template(template_bytes)
        if template is None:
            return False

        op_input = StackOperationInput(
            environment=self.environment.name,
            region=self.region.name,
            secrets_key=secrets_key,
            secrets_location=secrets_location,
            template_url=object_url(template.bucket, template.key, self.settings.s3_url_base),
        )
        stack_id = self.dispatcher.dispatch(self.cfn_client, op_input)
        if stack_id is None:
            return False

        result.stack_id = stack_id
        return True

    @log_stage("stage service payload")
    def stage_payload(self) -> Optional[StagedObject]:
        with removing(self.settings.payload_path) as payload_path:
            return self.stager.stage_file(
                payload_path,
                self.region.s3_bucket,
                key_root(KeyNamespace.DEPLOYMENT, self.service, self.environment),
                extension=".tar",
                content_type="application/x-tar",
                content_encoding="gzip",
                storage_class=self.settings.payload_storage_class,
            )

    @log_stage("create CloudFormation template")
    def create_template(self) -> Optional[bytes]:
        """Assemble and mutate the template, serialize it once and mirror it locally."""
        template = self.assembler.assemble(self.environment.stack_definition_path(self.region.name))
        if template is None:
            return None

        if not self.mutator.mutate(template, self.service):
            return None

        template_bytes = template.serialize()

        mirror = Path(self.settings.template_mirror_path)
        try:
            mirror.parent.mkdir(parents=True, exist_ok=True)
            mirror.write_bytes(template_bytes)
        except OSError as e:
            logger.error(f"Unable to write {mirror}: {e}")
            return None
        return template_bytes

    @log_stage("stage CloudFormation template")
    def stage_template(self, template_bytes: bytes) -> Optional[StagedObject]:
        return self.stager.stage_bytes(
            template_bytes,
            self.region.s3_bucket,
            key_root(KeyNamespace.TEMPLATE, self.service, self.environment),
            content_type="application/json",
            sse_kms_key_id=self.region.sse_kms_key_id,
        )
