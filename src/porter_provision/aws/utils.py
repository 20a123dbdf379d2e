"""AWS session and client management."""
import os
import logging
import threading
from typing import Any, Dict, Optional, Tuple

import boto3

from porter_provision.config.settings import get_settings

logger = logging.getLogger(__name__)

ROLE_SESSION_NAME = "porter-provision"


class AWSClientManager:
    """Singleton manager for AWS service clients, cached per service and region."""
    _instance = None
    _lock = threading.Lock()

    def __new__(cls):
        with cls._lock:
            if cls._instance is None:
                cls._instance = super(AWSClientManager, cls).__new__(cls)
                cls._instance._initialize()
        return cls._instance

    def _initialize(self):
        """Initialize the client manager with settings."""
        self.settings = get_settings()
        self.mode = self.settings.deployment_mode
        self.endpoint_url = self.settings.aws_endpoint_url
        self._clients: Dict[Tuple[str, str], Any] = {}
        self._sessions: Dict[str, boto3.Session] = {}
        self._clients_lock = threading.Lock()

        logger.info(f"Initializing AWSClientManager")
        logger.info(f"  Mode: {self.mode}")
        logger.info(f"  Default region: {self.settings.aws_region}")
        logger.info(f"  Endpoint: {self.endpoint_url}")
        if self.settings.assume_role_arn:
            logger.info(f"  Role: {self.settings.assume_role_arn}")

    def _base_session(self, region: str) -> boto3.Session:
        # Check for AWS profile in environment (for SSO)
        aws_profile = os.environ.get('AWS_PROFILE')
        if aws_profile and self.mode == 'aws-prod':
            return boto3.Session(profile_name=aws_profile, region_name=region)

        session_kwargs = {'region_name': region}
        if self.settings.aws_access_key_id:
            session_kwargs['aws_access_key_id'] = self.settings.aws_access_key_id
        if self.settings.aws_secret_access_key:
            session_kwargs['aws_secret_access_key'] = self.settings.aws_secret_access_key
        return boto3.Session(**session_kwargs)

    def _assume_role(self, session: boto3.Session, region: str) -> boto3.Session:
        sts_kwargs = {'region_name': region}
        if self.endpoint_url and self.settings.is_mock:
            sts_kwargs['endpoint_url'] = self.endpoint_url

        credentials = session.client('sts', **sts_kwargs).assume_role(
            RoleArn=self.settings.assume_role_arn,
            RoleSessionName=ROLE_SESSION_NAME,
        )['Credentials']
        logger.debug(f"Assumed {self.settings.assume_role_arn} for {region}")
        return boto3.Session(
            aws_access_key_id=credentials['AccessKeyId'],
            aws_secret_access_key=credentials['SecretAccessKey'],
            aws_session_token=credentials['SessionToken'],
            region_name=region,
        )

    def get_session(self, region: Optional[str] = None) -> boto3.Session:
        """Get or create the session used for a region, assuming the configured role."""
        region = region or self.settings.aws_region
        with self._clients_lock:
            if region in self._sessions:
                return self._sessions[region]

            session = self._base_session(region)
            if self.settings.assume_role_arn:
                session = self._assume_role(session, region)
            self._sessions[region] = session
            return session

    def get_client(self, service_name: str, region: Optional[str] = None) -> Any:
        """Get or create an AWS service client for a region."""
        region = region or self.settings.aws_region
        cache_key = (service_name, region)
        if cache_key in self._clients:
            return self._clients[cache_key]

        session = self.get_session(region)

        client_kwargs = {}
        # Add endpoint URL for local/mock modes
        if self.endpoint_url and self.settings.is_mock:
            client_kwargs['endpoint_url'] = self.endpoint_url

        try:
            client = session.client(service_name, **client_kwargs)
        except Exception as e:
            logger.error(f"Error creating {service_name} client for {region}: {str(e)}")
            raise

        with self._clients_lock:
            self._clients.setdefault(cache_key, client)
        logger.debug(f"Created {service_name} client for {region}")
        return self._clients[cache_key]

    def clear_clients(self):
        """Clear all cached clients and sessions."""
        with self._clients_lock:
            self._clients.clear()
            self._sessions.clear()
        logger.debug("Cleared all AWS clients")


# Convenience functions for common operations

def get_s3_client(region: Optional[str] = None):
    """Get the S3 client."""
    return AWSClientManager().get_client('s3', region)


def get_cloudformation_client(region: Optional[str] = None):
    """Get the CloudFormation client."""
    return AWSClientManager().get_client('cloudformation', region)
