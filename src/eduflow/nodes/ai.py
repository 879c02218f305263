"""
AI analysis node.

Uses the OpenAI chat completions API when an API key is available
(integration credentials, settings or OPENAI_API_KEY); otherwise falls
back to local text heuristics.
"""

from __future__ import annotations

import re
from collections import Counter
from typing import Any, Dict, Optional

from pydantic import field_validator

from eduflow.config import get_settings
from eduflow.errors import NodeApiError
from eduflow.nodes.base import BaseNode, NodeConfig, NodeExecutionContext, NodeOutput
from eduflow.nodes.http import HttpClient


AI_MODES = ("summary", "keywords", "feedback")

STOP_WORDS = frozenset(
    "the a an and or but in on at to for of with by is are was were be been being "
    "have has had do does did will would could should may might must can this that "
    "these those i you he she it we they me him her us them".split()
)

PROMPTS = {
    "summary": "Summarize the following text in at most {max_length} characters.",
    "keywords": "List the ten most important keywords of the following text, comma separated.",
    "feedback": "Give short, constructive writing feedback on the following student text.",
}


class LocalAIConfig(NodeConfig):
    text: str
    mode: str
    maxLength: int = 100

    @field_validator("text")
    @classmethod
    def text_required(cls, v: str) -> str:
        if not v:
            raise ValueError("Text is required")
        return v

    @field_validator("mode")
    @classmethod
    def mode_known(cls, v: str) -> str:
        if not v:
            raise ValueError("Mode is required")
        if v not in AI_MODES:
            raise ValueError("Invalid mode. Must be summary, keywords, or feedback")
        return v


def _sentences(text: str) -> list[str]:
    return [s.strip() for s in re.split(r"[.!?]+", text) if s.strip()]


def summarize(text: str, max_length: int) -> Dict[str, Any]:
    sentences = _sentences(text)
    summary = ". ".join(sentences[:3])[:max_length]
    return {
        "mode": "summary",
        "summary": summary,
        "originalLength": len(text),
        "summaryLength": len(summary),
        "sentenceCount": len(sentences),
    }


def extract_keywords(text: str) -> Dict[str, Any]:
    words = [
        w for w in re.sub(r"[^\w\s]", "", text.lower()).split()
        if len(w) > 2 and w not in STOP_WORDS
    ]
    counts = Counter(words)
    return {
        "mode": "keywords",
        "keywords": [word for word, _ in counts.most_common(10)],
        "totalWords": len(words),
        "uniqueWords": len(counts),
        "wordFrequency": dict(counts),
    }


def writing_feedback(text: str) -> Dict[str, Any]:
    word_count = len(text.split())
    sentence_count = max(len(_sentences(text)), 1)
    avg_words = round(word_count / sentence_count)

    notes = []
    score = 50
    if word_count < 50:
        notes.append("Consider adding more detail to your response.")
        score -= 10
    elif word_count > 500:
        notes.append("Your response is quite lengthy. Consider being more concise.")
        score -= 5

    if avg_words > 25:
        notes.append("Some sentences are very long. Consider breaking them up for better readability.")
        score -= 10
    elif avg_words < 10:
        notes.append("Your sentences are quite short. Consider combining some ideas.")
        score -= 5

    if not notes:
        notes.append("Good structure and length. Consider reviewing for clarity and grammar.")
        score = 85

    return {
        "mode": "feedback",
        "feedback": " ".join(notes),
        "score": max(0, min(100, score)),
        "metrics": {
            "wordCount": word_count,
            "sentenceCount": sentence_count,
            "avgWordsPerSentence": avg_words,
        },
    }


class LocalAINode(BaseNode):
    type = "local-ai"
    description = {
        "label": "AI Analysis",
        "description": "Analyze text with local AI",
        "category": "Utility",
    }
    config_model = LocalAIConfig

    async def execute(self, context: NodeExecutionContext) -> Any:
        config: LocalAIConfig = self.parsed_config
        api_key = self._api_key(context)
        if api_key:
            return await self._complete(api_key, config)

        if config.mode == "summary":
            result = summarize(config.text, config.maxLength)
        elif config.mode == "keywords":
            result = extract_keywords(config.text)
        else:
            result = writing_feedback(config.text)
        return NodeOutput.simulated(result)

    @staticmethod
    def _api_key(context: NodeExecutionContext) -> Optional[str]:
        key = context.credential("apiKey")
        if key:
            return key
        settings_key = get_settings().openai_api_key
        if settings_key is not None:
            return settings_key.get_secret_value()
        return BaseNode.env("OPENAI_API_KEY")

    async def _complete(self, api_key: str, config: LocalAIConfig) -> Dict[str, Any]:
        settings = get_settings()
        client = HttpClient(base_url=settings.openai_base_url, bearer_token=api_key)
        response = await client.post(
            "/chat/completions",
            json={
                "model": settings.openai_model,
                "messages": [
                    {"role": "system", "content": PROMPTS[config.mode].format(max_length=config.maxLength)},
                    {"role": "user", "content": config.text},
                ],
            },
        )
        response.raise_for_status()
        body = response.json()
        try:
            content = body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise NodeApiError("OpenAI returned an unexpected response", response_body=response.text) from e

        return {
            "mode": config.mode,
            "result": content,
            "model": body.get("model", settings.openai_model),
            "usage": body.get("usage", {}),
        }


__all__ = ["LocalAINode", "summarize", "extract_keywords", "writing_feedback"]
