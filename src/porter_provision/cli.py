# cli.py
import sys
import logging

import click
from pydantic import ValidationError

from porter_provision import __version__
from porter_provision.config.service_config import load_service_config
from porter_provision.config.settings import get_settings
from porter_provision.errors import LocalIOError
from porter_provision.provision.dispatch import STRATEGIES, strategy_for
from porter_provision.provision.runner import provision_regions
from porter_provision.provision_state import ProvisionStateManager

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


@click.group()
@click.version_option(__version__, prog_name="porter-provision")
def cli():
    """Provision a service's CloudFormation stack into AWS regions"""
    configure_logging(get_settings().log_level)


@cli.command()
def show_config():
    """Show current configuration"""
    settings = get_settings()

    print("Current Configuration:")
    print(f"  Deployment Mode: {settings.deployment_mode}")
    print(f"  AWS Region: {settings.aws_region}")
    print(f"  AWS Endpoint: {settings.aws_endpoint_url}")
    print(f"  Assume Role: {settings.assume_role_arn}")
    print(f"  Service Config: {settings.config_path}")
    print(f"  Payload: {settings.payload_path}")
    print(f"  Template Mirror: {settings.template_mirror_path}")
    print(f"  Secrets Bundle: {settings.secrets_path}")
    print(f"  State File: {settings.state_path}")


@cli.command()
@click.option("--environment", "-e", required=True, help="Environment to provision")
@click.option("--region", "-r", "regions", multiple=True,
              help="Region to provision (repeatable, defaults to all of the environment's)")
@click.option("--operation",
              type=click.Choice(sorted(STRATEGIES)),
              default="create",
              help="Create a new stack or update an existing one")
@click.option("--stack-name", default=None,
              help="Stack name (defaults to <service>-<environment>)")
def provision(environment, regions, operation, stack_name):
    """Stage the payload and template, then create or update the stack"""
    settings = get_settings()

    try:
        config = load_service_config(settings.config_path)
    except (LocalIOError, ValidationError) as e:
        print(f"❌ Could not load {settings.config_path}: {e}")
        sys.exit(1)

    stack_name = stack_name or f"{config.service_name}-{environment}"
    try:
        strategy = strategy_for(operation, stack_name)
        state = provision_regions(config, environment, strategy,
                                  region_names=list(regions) or None,
                                  settings=settings)
    except KeyError as e:
        print(f"❌ {e.args[0]}")
        sys.exit(1)

    try:
        ProvisionStateManager(settings.state_path).save(state)
    except LocalIOError as e:
        print(f"⚠️ Could not save provision state: {e}")

    for name, result in state.regions.items():
        if result.stack_id:
            print(f"✅ {name}: {result.stack_id}")
        else:
            print(f"❌ {name}: provisioning failed")

    if not state.succeeded:
        sys.exit(1)


if __name__ == "__main__":
    cli()
