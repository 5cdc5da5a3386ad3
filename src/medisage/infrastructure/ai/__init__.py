"""AI infrastructure: completion provider client and prompts."""

from medisage.infrastructure.ai.openrouter import OpenRouterClient

__all__ = ["OpenRouterClient"]
