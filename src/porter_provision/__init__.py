"""
Region provisioning pipeline for CloudFormation stacks.

Stages a service payload and its template in S3, content-addressed, and
creates or updates the service's stack in one AWS region.
"""

__version__ = "0.1.0"
