from .messages import CommandResult, OutboundMessage, UIAction

__all__ = ["CommandResult", "OutboundMessage", "UIAction"]
