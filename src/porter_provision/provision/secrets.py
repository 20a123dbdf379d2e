"""Staging of the service's secrets bundle."""
import logging
from pathlib import Path
from typing import Optional, Tuple

from porter_provision.models import (
    EnvironmentDescriptor,
    KeyNamespace,
    RegionDescriptor,
    ServiceDescriptor,
    key_root,
)
from porter_provision.s3.stager import ContentAddressedStager

logger = logging.getLogger(__name__)


class SecretsStager:
    """Stages the secrets bundle under the digest of the payload it ships with.

    Keys look like ``porter-deployment/<service>/<env>/<version>/<payload
    digest>/<secrets digest>.secrets``: content-addressed like everything else,
    and grouped with their payload.
    """

    def __init__(self, stager: ContentAddressedStager, service: ServiceDescriptor,
                 environment: EnvironmentDescriptor, region: RegionDescriptor,
                 secrets_path: str):
        self.stager = stager
        self.service = service
        self.environment = environment
        self.region = region
        self.secrets_path = Path(secrets_path)

    def stage(self, payload_digest: str) -> Optional[Tuple[str, str]]:
        """Return ``(secrets_key, secrets_location)``, or None on failure.

        Both are empty strings when the service has no secrets bundle.
        """
        if not self.secrets_path.exists():
            logger.info(f"No secrets bundle at {self.secrets_path}")
            return "", ""

        try:
            data = self.secrets_path.read_bytes()
        except OSError as e:
            logger.error(f"Reading secrets bundle {self.secrets_path} failed: {e}")
            return None

        key_prefix = f"{key_root(KeyNamespace.DEPLOYMENT, self.service, self.environment)}/{payload_digest}"
        staged = self.stager.stage_bytes(data, self.region.s3_bucket, key_prefix,
                                         extension=".secrets",
                                         content_type="text/plain",
                                         sse_kms_key_id=self.region.sse_kms_key_id)
        if staged is None:
            return None
        return staged.key, staged.bucket
