"""
Configuration for porter-provision.

Process settings come from the environment through pydantic-settings; the
service, its environments and their regions come from the service config file.
"""
