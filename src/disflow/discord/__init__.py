from .client import DiscordBotClient

__all__ = ["DiscordBotClient"]
