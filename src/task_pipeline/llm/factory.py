"""Resolve the configured reasoning provider once at startup."""

from __future__ import annotations

import logging

from task_pipeline.config.settings import Settings
from task_pipeline.llm.anthropic_adapter import AnthropicProvider
from task_pipeline.llm.deterministic import DeterministicProvider
from task_pipeline.llm.openai_adapter import OpenAIProvider
from task_pipeline.llm.provider import ReasoningProvider

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = ("deterministic", "openai", "anthropic")


def build_provider(settings: Settings) -> ReasoningProvider:
    provider = settings.llm_provider.lower().strip()
    logger.info("llm provider=%s model=%s", provider, settings.llm_model)

    if provider == "deterministic":
        return DeterministicProvider()
    if provider == "openai":
        return OpenAIProvider(
            api_key=settings.resolved_openai_api_key(),
            model=settings.llm_model,
            base_url=settings.llm_base_url,
            timeout_s=settings.llm_timeout_s,
            max_retries=settings.llm_max_retries,
            backoff_s=settings.llm_backoff_s,
            max_corrections=settings.llm_max_correction_attempts,
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
        )
    if provider == "anthropic":
        return AnthropicProvider(
            api_key=settings.resolved_anthropic_api_key(),
            model=settings.llm_model,
            base_url=settings.anthropic_base_url,
            timeout_s=settings.llm_timeout_s,
            max_retries=settings.llm_max_retries,
            backoff_s=settings.llm_backoff_s,
            max_corrections=settings.llm_max_correction_attempts,
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
        )
    raise ValueError(
        f"Unsupported LLM provider: {settings.llm_provider} "
        f"(expected one of {', '.join(SUPPORTED_PROVIDERS)})"
    )
