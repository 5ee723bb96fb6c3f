"""
Onboarding Assistant

Freeform chat layer over the interview engine. The assistant reads the
session state and may run registered actions through function calling.

Usage:
    from onboarding_agent import AssistantBridge, GeminiLanguageModel

    bridge = AssistantBridge(llm=GeminiLanguageModel(), registry=registry)
    engine = InterviewEngine(question_repo, session_repo, registry, assistant=bridge)

    reply = await engine.send_chat_message(session_id, "What platform is my site on?")
"""

from .agent import (
    AssistantBridge,
    StrategySummaryGenerator,
    build_system_prompt,
)
from .llm import GeminiLanguageModel

__all__ = [
    "AssistantBridge",
    "StrategySummaryGenerator",
    "build_system_prompt",
    "GeminiLanguageModel",
]
