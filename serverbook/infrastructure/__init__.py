"""
Infrastructure layer - HTTP implementations of the provisioning gateway and
the notification sink.
"""

from .discord_notifier import DiscordNotifier
from .lighthouse_client import LighthouseGateway

__all__ = ['DiscordNotifier', 'LighthouseGateway']
