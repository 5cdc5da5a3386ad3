"""Versioned AI prompts.

Prompts are versioned as code so the version used for a reply can be
audited and rolled back.
"""

from medisage.infrastructure.ai.prompts.medical_assistant_v1 import (
    MedicalAssistantPromptV1,
)

__all__ = ["MedicalAssistantPromptV1"]
