"""
Gemini language model adapter.

Implements the two calls the engine needs: `converse` for the function
calling chat loop and `generate` for one-shot text (competitor suggestions,
summaries). Automatic function calling is disabled; the assistant bridge
runs the loop itself so it can cap it.
"""
import logging
import time
from typing import Any, Optional

from google import genai
from google.genai import types

from onboarding.config import GEMINI_MODEL
from onboarding.models import FunctionCall, MessageRole, ModelReply, TranscriptMessage

logger = logging.getLogger(__name__)


def _function_declarations(tools: list[dict[str, Any]]) -> list[types.Tool]:
    if not tools:
        return []
    return [types.Tool(function_declarations=[
        types.FunctionDeclaration(
            name=tool["name"],
            description=tool.get("description", ""),
            parameters_json_schema=tool.get("parameters") or {"type": "object", "properties": {}},
        )
        for tool in tools
    ])]


def transcript_to_contents(transcript: list[TranscriptMessage]) -> list[types.Content]:
    """Map transcript entries onto Gemini conversation turns."""
    contents = []
    for message in transcript:
        if message.role == MessageRole.USER:
            contents.append(types.Content(role="user", parts=[types.Part(text=message.content)]))
        elif message.role == MessageRole.ASSISTANT:
            contents.append(types.Content(role="model", parts=[types.Part(text=message.content)]))
        elif message.role == MessageRole.FUNCTION and message.function_call:
            call = message.function_call
            contents.append(types.Content(role="model", parts=[
                types.Part(function_call=types.FunctionCall(name=call.name, args=call.parameters)),
            ]))
            result = message.function_result.model_dump() if message.function_result else {}
            contents.append(types.Content(role="user", parts=[
                types.Part.from_function_response(name=call.name, response=result),
            ]))
        # System entries are bookkeeping only
    return contents


def _parse_reply(response) -> ModelReply:
    text_parts = []
    function_call = None
    if response and response.candidates and response.candidates[0].content:
        for part in response.candidates[0].content.parts or []:
            if getattr(part, "thought", False):
                continue
            if part.function_call and function_call is None:
                function_call = FunctionCall(
                    name=part.function_call.name,
                    parameters=dict(part.function_call.args or {}),
                )
            elif part.text:
                text_parts.append(part.text)
    return ModelReply(text="".join(text_parts) or None, function_call=function_call)


class GeminiLanguageModel:
    """google-genai backed implementation of the language model interface."""

    def __init__(self, model: str = GEMINI_MODEL, client: Optional[genai.Client] = None):
        self.model = model
        self._client = client

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            self._client = genai.Client()
        return self._client

    async def converse(
        self,
        system_prompt: str,
        transcript: list[TranscriptMessage],
        tools: list[dict[str, Any]],
    ) -> ModelReply:
        t0 = time.perf_counter()
        response = await self.client.aio.models.generate_content(
            model=self.model,
            contents=transcript_to_contents(transcript),
            config=types.GenerateContentConfig(
                system_instruction=system_prompt,
                tools=_function_declarations(tools) or None,
                automatic_function_calling=types.AutomaticFunctionCallingConfig(disable=True),
            ),
        )
        elapsed = (time.perf_counter() - t0) * 1000
        reply = _parse_reply(response)
        kind = f"call {reply.function_call.name}" if reply.function_call else "text"
        logger.info(f"⏱️ converse ({self.model}): {elapsed:.0f}ms -> {kind}")
        return reply

    async def generate(self, prompt: str, system_instruction: Optional[str] = None) -> str:
        t0 = time.perf_counter()
        response = await self.client.aio.models.generate_content(
            model=self.model,
            contents=prompt,
            config=types.GenerateContentConfig(system_instruction=system_instruction),
        )
        elapsed = (time.perf_counter() - t0) * 1000
        logger.info(f"⏱️ generate ({self.model}): {elapsed:.0f}ms")
        return _parse_reply(response).text or ""
