"""Provision a KVM appliance cluster on a single virtualization host."""

__version__ = "0.1.0"
