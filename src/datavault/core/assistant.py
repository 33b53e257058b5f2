"""
assistant.py
─────────────────────────────────────────────────────────────────────────────
Chat assistant for the active dataset.

With a Groq API key the query goes to the chat-completions API and the reply
is read as a JSON envelope {message, query, visualization, insights}. Without
one, a local pattern-matching mock answers so the dashboard keeps working.
Failures surface as ServiceUnavailableError; the caller decides how to
apologise.
─────────────────────────────────────────────────────────────────────────────
"""

import json
import re
from typing import Optional

from groq import Groq
from pydantic import ValidationError

from datavault.config import settings
from datavault.core.statistics import numeric_values
from datavault.core.visualization import build_visualization
from datavault.models import (
    AssistantResponse,
    ChartKind,
    ColumnType,
    Dataset,
    QueryContext,
    VisualizationConfig,
)
from datavault.utils.exceptions import ServiceUnavailableError
from datavault.utils.logger import get_logger

logger = get_logger(__name__)

HISTORY_TURNS = 3
SAMPLE_ROWS = 3


def _get_client() -> Groq:
    """Lazily build the Groq client so API key changes take effect."""
    return Groq(api_key=settings.GROQ_API_KEY)


# ---------------------------------------------------------------------------
# PROMPTS
# ---------------------------------------------------------------------------

def _build_system_prompt(dataset: Dataset) -> str:
    columns = ", ".join(f"{col.name} ({col.type.value})" for col in dataset.columns)
    return f"""You are a data analysis assistant. You help users explore and understand their data through natural language queries.

Dataset Information:
- Name: {dataset.name}
- Description: {dataset.description}
- Columns: {columns}
- Total records: {len(dataset.rows)}

Your role:
1. Interpret user queries about the data
2. Suggest appropriate visualizations
3. Provide insights and patterns
4. Respond conversationally

Always respond in JSON format with the following structure:
{{
  "message": "conversational response",
  "query": "SQL-like query if applicable",
  "visualization": {{
    "kind": "bar | line | pie | scatter | table",
    "title": "chart title",
    "points": [{{"id": "...", "timestamp": "ISO-8601", "value": 0, "category": "...", "extra_fields": {{}}}}],
    "options": {{}}
  }},
  "insights": ["key insights array"]
}}"""


def _build_user_prompt(context: QueryContext) -> str:
    recent = "\n".join(
        f"{msg.role.value}: {msg.content}"
        for msg in context.previous_messages[-HISTORY_TURNS:]
    )
    sample = context.dataset.to_frame().head(SAMPLE_ROWS).to_string(index=False)
    return (
        f"Previous conversation:\n{recent}\n\n"
        f"Current user query: {context.user_query}\n\n"
        f"Available data sample:\n{sample}"
    )


# ---------------------------------------------------------------------------
# RESPONSE PARSING
# ---------------------------------------------------------------------------

def _extract_json(raw: str) -> str:
    """Pull a JSON object out of a ```json fenced block when there is one."""
    match = re.search(r"```(?:json)?\s*(.*?)```", raw, re.DOTALL)
    if match:
        return match.group(1).strip()
    return raw.strip()


def parse_response(raw: str) -> AssistantResponse:
    """
    Read the model's reply. Non-JSON replies become the message verbatim;
    a malformed visualization is dropped rather than failing the answer.
    """
    try:
        parsed = json.loads(_extract_json(raw))
    except json.JSONDecodeError:
        return AssistantResponse(message=raw)
    if not isinstance(parsed, dict):
        return AssistantResponse(message=raw)

    visualization: Optional[VisualizationConfig] = None
    if parsed.get("visualization"):
        try:
            visualization = VisualizationConfig.model_validate(parsed["visualization"])
        except ValidationError as e:
            logger.warning(f"Discarding malformed visualization from assistant: {e.error_count()} error(s)")

    insights = parsed.get("insights") or []
    return AssistantResponse(
        message=parsed.get("message") or raw,
        query=parsed.get("query"),
        visualization=visualization,
        insights=[str(i) for i in insights] if isinstance(insights, list) else [],
    )


# ---------------------------------------------------------------------------
# LOCAL MOCK
# ---------------------------------------------------------------------------

def mock_response(context: QueryContext) -> AssistantResponse:
    query = context.user_query.lower()
    dataset = context.dataset

    if "trend" in query or "over time" in query:
        return AssistantResponse(
            message="I can see you're interested in trends over time. Let me show you a line chart of the data.",
            visualization=build_visualization(
                dataset, ChartKind.LINE, "Trends Over Time", limit=10, options={"showTrendLine": True},
            ),
            insights=[
                "The data shows an upward trend over the selected period",
                "Peak values occur during certain time intervals",
            ],
        )

    if "compare" in query or "category" in query:
        return AssistantResponse(
            message="I'll create a comparison chart showing the different categories in your data.",
            visualization=build_visualization(
                dataset, ChartKind.BAR, "Category Comparison", limit=8, options={"groupBy": "category"},
            ),
            insights=[
                "Some categories show significantly higher values",
                "Distribution appears to follow a pattern",
            ],
        )

    if "total" in query or "sum" in query:
        value_cols = dataset.columns_of_type(ColumnType.NUMBER)
        values = numeric_values(dataset.rows, value_cols[0].name) if value_cols else []
        total = sum(values)
        average = total / len(dataset.rows) if dataset.rows else 0.0
        return AssistantResponse(
            message=f"The total sum across all data points is {total:,.2f}.",
            insights=[
                f"Total value: {total:,.2f}",
                f"Average value: {average:.2f}",
            ],
        )

    return AssistantResponse(
        message=(
            "I understand you want to explore the data. Could you be more specific about what you'd "
            "like to see? For example, try asking about trends, comparisons, or totals."
        ),
        insights=[
            "Try asking about 'trends over time'",
            "Ask for 'category comparisons'",
            "Request 'total values' or summaries",
        ],
    )


# ---------------------------------------------------------------------------
# MAIN ENTRY POINT
# ---------------------------------------------------------------------------

def query_data(context: QueryContext) -> AssistantResponse:
    """
    Answer a free-text question about the dataset.

    Raises:
        ServiceUnavailableError: If the remote assistant call fails.
    """
    logger.info(f"Assistant query: '{context.user_query[:80]}'")

    if not settings.assistant_enabled:
        logger.info("No API key configured — answering with the local mock.")
        return mock_response(context)

    messages = [
        {"role": "system", "content": _build_system_prompt(context.dataset)},
        {"role": "user", "content": _build_user_prompt(context)},
    ]
    try:
        client = _get_client()
        response = client.chat.completions.create(
            messages=messages,
            model=settings.DEFAULT_MODEL,
            temperature=settings.TEMPERATURE,
            max_tokens=settings.MAX_TOKENS,
        )
        raw = response.choices[0].message.content or ""
    except Exception as e:
        logger.error(f"Assistant call failed: {e}")
        raise ServiceUnavailableError(f"AI provider error: {e}") from e

    logger.info("Assistant answered successfully.")
    return parse_response(raw)
