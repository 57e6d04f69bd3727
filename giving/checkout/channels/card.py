"""
Canal carte: canal par défaut, obligatoire.
"""
from .base import ChannelController


class CardChannel(ChannelController):
    kind = "card"
    label = "Card"
    mandatory = True
    failure_message = "Card details error. Please check and try again."
