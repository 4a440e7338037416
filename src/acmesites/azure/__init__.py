"""Azure Resource Manager transport."""

from acmesites.azure.arm import ArmClient

__all__ = ["ArmClient"]
