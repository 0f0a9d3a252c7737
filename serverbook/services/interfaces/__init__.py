"""
Service interfaces for dependency inversion.
Allows swapping the provisioning and notification backends without changing the engine.
"""

from .gateway import ProvisioningGateway
from .notifier import Notifier

__all__ = ['ProvisioningGateway', 'Notifier']
