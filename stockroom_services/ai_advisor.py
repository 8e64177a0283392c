"""
AI advisor -- product descriptions and stock insights over the Groq API.

================================================================================
THE ADVISOR ONLY PRODUCES TEXT
================================================================================

It never mutates inventory state.  Failures degrade instead of raising:

- ``generate_description`` returns a fixed apology string on any error,
  and a placeholder when the model answers with nothing.
- ``get_insights`` returns None on any error; callers render "insights
  unavailable".

Capability checks (AI_DESC_GEN, AI_INSIGHTS) are the only exceptions that
reach the caller, and only when an actor is passed.
================================================================================
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Sequence

from groq import Groq, GroqError

from stockroom_config.settings import Settings
from stockroom_kernel.db.codec import product_to_record
from stockroom_kernel.domain.models import ALL_DEPARTMENTS, Product, User
from stockroom_kernel.domain.permissions import Permission, require_permission
from stockroom_kernel.logging_config import get_logger

logger = get_logger("ai.advisor")

DESCRIPTION_FAILED = "Failed to generate description. Please try again."
DESCRIPTION_EMPTY = "No description generated."

MAX_PRIORITIES = 3


@dataclass(frozen=True)
class Insights:
    summary: str
    priorities: tuple[str, ...]
    risk_assessment: str


def description_prompt(name: str, category: str, department: str) -> str:
    return (
        f'Write a compelling, concise product description for "{name}" in the '
        f'"{category}" category belonging to the "{department}" department. '
        "Focus on professional usage and technical specs relevant to this "
        "department. Limit to 2 sentences."
    )


def department_context(department: str) -> str:
    return "global" if department == ALL_DEPARTMENTS else f"the {department} department"


def insights_prompt(products: Sequence[Product], department: str) -> str:
    context = department_context(department)
    data = json.dumps([product_to_record(p) for p in products])
    return (
        f"Analyze this inventory data for {context}: {data}.\n"
        "Include:\n"
        "1. A summary of overall stock health for this specific area.\n"
        f"2. Top 3 restock priorities considering the criticality of items in {context}.\n"
        "3. A brief operational risk assessment if stock levels fall further.\n"
        'Respond with a JSON object with keys "summary" (string), '
        '"priorities" (array of strings) and "trendPrediction" (string, the '
        "operational risk assessment)."
    )


def parse_insights(content: str) -> Insights:
    """Parse the model's JSON reply.  Raises ValueError/KeyError/TypeError."""
    data: dict[str, Any] = json.loads(content)
    priorities = data["priorities"]
    if not isinstance(priorities, list):
        raise TypeError("priorities must be a list")
    return Insights(
        summary=str(data["summary"]),
        priorities=tuple(str(p) for p in priorities[:MAX_PRIORITIES]),
        risk_assessment=str(data["trendPrediction"]),
    )


class InventoryAdvisor:
    """
    Wrapper around a Groq chat client.

    ``client`` is anything exposing ``chat.completions.create``; when it is
    None one is built from ``settings.groq_api_key``.  Without a key the
    advisor is disabled and every call takes its failure path.
    """

    DESCRIPTION_TEMPERATURE = 0.7
    INSIGHTS_TEMPERATURE = 0.2
    MAX_TOKENS = 512

    def __init__(self, settings: Settings | None = None, client: Any | None = None):
        self._settings = settings or Settings()
        if client is None and self._settings.ai_enabled:
            client = Groq(
                api_key=self._settings.groq_api_key,
                timeout=self._settings.ai_timeout_seconds,
            )
        elif client is None:
            logger.warning("ai_disabled", extra={"reason": "GROQ_API_KEY not set"})
        self._client = client

    def is_available(self) -> bool:
        return self._client is not None

    def _complete(self, prompt: str, *, temperature: float, json_mode: bool) -> str | None:
        kwargs: dict[str, Any] = {
            "model": self._settings.ai_model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
            "max_tokens": self.MAX_TOKENS,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        response = self._client.chat.completions.create(**kwargs)
        if not response.choices:
            return None
        return response.choices[0].message.content

    def generate_description(
        self,
        name: str,
        category: str,
        department: str,
        actor: User | None = None,
    ) -> str:
        """Two-sentence description for the registration form."""
        if actor is not None:
            require_permission(actor, Permission.AI_DESC_GEN)
        if not self.is_available():
            return DESCRIPTION_FAILED
        try:
            content = self._complete(
                description_prompt(name, category, department),
                temperature=self.DESCRIPTION_TEMPERATURE,
                json_mode=False,
            )
        except GroqError as exc:
            logger.error("ai_description_failed", extra={"error": str(exc)})
            return DESCRIPTION_FAILED
        except Exception as exc:
            logger.exception(
                "ai_description_failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return DESCRIPTION_FAILED
        if not isinstance(content, str) or not content.strip():
            return DESCRIPTION_EMPTY
        return content.strip()

    def get_insights(
        self,
        products: Sequence[Product],
        department: str,
        actor: User | None = None,
    ) -> Insights | None:
        """Stock-health summary, up to three restock priorities, risk text."""
        if actor is not None:
            require_permission(actor, Permission.AI_INSIGHTS)
        if not self.is_available():
            return None
        try:
            content = self._complete(
                insights_prompt(products, department),
                temperature=self.INSIGHTS_TEMPERATURE,
                json_mode=True,
            )
            if not content:
                logger.warning("ai_insights_empty")
                return None
            insights = parse_insights(content)
        except GroqError as exc:
            logger.error("ai_insights_failed", extra={"error": str(exc)})
            return None
        except (ValueError, KeyError, TypeError) as exc:
            logger.error(
                "ai_insights_unparseable",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return None
        except Exception as exc:
            logger.exception(
                "ai_insights_failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return None
        logger.info(
            "ai_insights_generated",
            extra={"product_count": len(products), "priority_count": len(insights.priorities)},
        )
        return insights
