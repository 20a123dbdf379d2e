"""Provision an environment's regions, each as an independent run."""
import logging
import shutil
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Optional, Sequence

from porter_provision.aws.utils import get_cloudformation_client, get_s3_client
from porter_provision.config.service_config import ServiceConfig
from porter_provision.config.settings import Settings, get_settings
from porter_provision.models import RegionProvisioningResult
from porter_provision.provision.dispatch import StackDispatcher, StackStrategy
from porter_provision.provision.stack_creator import RegionProvisioner
from porter_provision.provision_state import ProvisionState
from porter_provision.utils.scratch import remove_path

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str], object]


def region_scoped(path: str, region_name: str) -> str:
    """``dir/name.ext`` -> ``dir/name.<region>.ext``."""
    p = Path(path)
    return str(p.with_name(f"{p.stem}.{region_name}{p.suffix}"))


def provision_regions(config: ServiceConfig, environment_name: str, strategy: StackStrategy,
                      region_names: Optional[Sequence[str]] = None,
                      settings: Optional[Settings] = None,
                      s3_client_factory: ClientFactory = get_s3_client,
                      cfn_client_factory: ClientFactory = get_cloudformation_client) -> ProvisionState:
    """Provision the selected regions (all of the environment's by default) in parallel.

    Each region gets its own copy of the payload and its own template mirror,
    so runs share no mutable state. A region named more than once runs once.
    The shared payload is removed afterwards.
    """
    settings = settings or get_settings()
    service = config.service()
    environment_config = config.get_environment(environment_name)
    environment = environment_config.to_descriptor()
    regions = [
        environment_config.get_region(name).to_descriptor()
        for name in dict.fromkeys(region_names or [r.name for r in environment_config.regions])
    ]

    state = ProvisionState(
        service_name=service.name,
        service_version=service.version,
        environment=environment.name,
    )

    def run(region) -> bool:
        region_settings = settings.model_copy(update={
            'payload_path': region_scoped(settings.payload_path, region.name),
            'template_mirror_path': region_scoped(settings.template_mirror_path, region.name),
        })
        try:
            shutil.copyfile(settings.payload_path, region_settings.payload_path)
        except OSError as e:
            logger.error(f"Copying payload for {region.name} failed: {e}")
            return False

        provisioner = RegionProvisioner(
            service, environment, region, StackDispatcher(strategy),
            s3_client=s3_client_factory(region.name),
            cfn_client=cfn_client_factory(region.name),
            settings=region_settings,
        )
        return provisioner.provision(state.region(region.name))

    for region in regions:
        state.region(region.name)

    try:
        with ThreadPoolExecutor(max_workers=max(1, len(regions))) as executor:
            outcomes = list(executor.map(run, regions))
    finally:
        remove_path(settings.payload_path)

    for region, ok in zip(regions, outcomes):
        if ok:
            logger.info(f"Provisioned {region.name}: {state.regions[region.name].stack_id}")
        else:
            logger.error(f"Provisioning failed in {region.name}")
    return state
