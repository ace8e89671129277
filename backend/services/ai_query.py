"""
Natural-language questions over the metrics table.

A question such as "Who booked the most meetings last week?" is answered in
two LLM calls:

    1. Extraction: the model turns the question into a date range and a
       one-line intent, returned as strict JSON.
    2. Summary: the reconciled metrics for that range are handed back to the
       model, which writes a short conversational answer.

The LLM is behind the MetricsAnalyst interface; OpenAIAnalyst is the default
implementation and tests substitute a fake.
"""

import json
import logging
from datetime import date
from typing import Any, Dict, Iterable, Optional, Protocol

from openai import AsyncOpenAI, OpenAIError
from pydantic import ValidationError

from backend.core.config import DEFAULT_EXCLUDED_LEAD_SOURCE, Settings
from backend.models import AIQueryResponse, DateExtraction, DateRange, MetricsResponse
from backend.services.metrics_query import MetricsQueryService

logger = logging.getLogger(__name__)


class LLMResponseError(Exception):
    """The model's reply could not be used; ``raw_text`` holds what it said."""

    def __init__(self, message: str, raw_text: Optional[str] = None):
        super().__init__(message)
        self.raw_text = raw_text


class LLMServiceError(Exception):
    """The LLM provider could not be reached or rejected the request."""
    pass


# =============================================================================
# PROMPTS
# =============================================================================


def build_date_extraction_prompt(query: str, today: date) -> str:
    """Prompt asking the model for {"startDate", "endDate", "intent"} as JSON."""
    return f"""
You are a helpful assistant that extracts date ranges and intent from natural language queries about sales metrics.

The user query is: "{query}"

Current date is: {today.isoformat()}

IMPORTANT: You must respond with ONLY a valid JSON object, no additional text, explanations, or formatting.

Please analyze the query and respond with a JSON object containing:
1. "startDate": The start date in YYYY-MM-DD format
2. "endDate": The end date in YYYY-MM-DD format
3. "intent": A brief description of what the user wants to know

For time periods like:
- "today" = current date to current date
- "yesterday" = previous date to previous date
- "last 7 days" = 7 days ago to today
- "last month" = 30 days ago to today
- "last week" = 7 days ago to today

Example response (respond exactly like this format):
{{"startDate": "2025-10-01", "endDate": "2025-10-26", "intent": "Find the person with the highest number of dials"}}
"""


def build_analysis_prompt(
    query: str,
    extraction: DateExtraction,
    metrics: MetricsResponse,
    excluded_sources: Iterable[str] = (DEFAULT_EXCLUDED_LEAD_SOURCE,),
) -> str:
    """Prompt asking the model to answer ``query`` from the metrics table."""
    excluded = ', '.join(f'"{source}"' for source in excluded_sources) or 'none'
    data = metrics.model_dump_json(indent=2)

    return f"""
You are a helpful assistant analyzing sales metrics data.

User Query: "{query}"
Intent: {extraction.intent}
Date Range: {extraction.startDate.isoformat()} to {extraction.endDate.isoformat()}

Here is the metrics data:
{data}

The data contains:
- userName: Name of the sales person
- team: Team the sales person belongs to ("NA" when unknown)
- Dial: Number of calls made
- Connect: Number of calls connected
- Pitch: Number of pitches given
- Conversation: Number of conversations held
- Meeting: Number of meetings scheduled (dialer meetings plus meetings logged in the meetings spreadsheet, excluding lead sources: {excluded})
- meetingCounts: Meeting breakdown into dialer ("vendor") and spreadsheet ("external") meetings
- meetingDetails: Detailed spreadsheet meetings with timestamps, lead names, companies, current stages and lead sources

Note: Spreadsheet meetings from the excluded lead sources are already counted by the dialer and are left out.

Please analyze this data and provide a clear, conversational answer to the user's query.

IMPORTANT: Respond with a natural, conversational text answer only. Do NOT return JSON or structured data.

Guidelines:
- Use **bold** formatting for names and important numbers
- Be specific with numbers and names
- Keep it conversational and easy to understand
- If asked for rankings, mention the top 3-5 performers
- Include relevant comparisons or insights
- When discussing meetings, you can reference lead names, companies and current stages

Example response format:
"Based on the data for [date range], **[Name]** has the highest number of dials with **[number] dials**."
"""


def extract_json_object(text: Optional[str]) -> Dict[str, Any]:
    """
    Parse the first balanced top-level JSON object in ``text``.

    Models sometimes wrap JSON in prose or code fences; braces inside JSON
    strings are skipped while scanning.

    Raises:
        ValueError: If no parseable object is found.

    Example:
        >>> extract_json_object('Sure! {"a": "}"} Done.')
        {'a': '}'}
    """
    if not text:
        raise ValueError("Empty model response")

    start = text.find('{')
    while start != -1:
        # an unbalanced brace is prose; a balanced candidate is skipped whole
        resume = start + 1
        depth = 0
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            char = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif char == '\\':
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == '{':
                depth += 1
            elif char == '}':
                depth -= 1
                if depth == 0:
                    resume = index + 1
                    try:
                        parsed = json.loads(text[start:resume])
                    except json.JSONDecodeError:
                        break
                    if isinstance(parsed, dict):
                        return parsed
                    break
        start = text.find('{', resume)

    raise ValueError("No JSON object found in model response")


# =============================================================================
# ANALYSTS
# =============================================================================


class MetricsAnalyst(Protocol):
    """LLM collaborator used to answer metrics questions."""

    async def extract_date_range(self, query: str, today: date) -> DateExtraction:
        ...

    async def summarize(self, query: str, extraction: DateExtraction, metrics: MetricsResponse) -> str:
        ...


class OpenAIAnalyst:
    """
    MetricsAnalyst backed by OpenAI chat completions.

    The AsyncOpenAI client is created lazily so constructing the analyst
    never needs a key or an event loop.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = 'gpt-4o',
        extraction_temperature: float = 0.1,
        summary_temperature: float = 0.3,
        excluded_sources: Iterable[str] = (DEFAULT_EXCLUDED_LEAD_SOURCE,),
        client: Optional[AsyncOpenAI] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.extraction_temperature = extraction_temperature
        self.summary_temperature = summary_temperature
        self.excluded_sources = list(excluded_sources)
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> 'OpenAIAnalyst':
        return cls(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            extraction_temperature=settings.openai_extraction_temperature,
            summary_temperature=settings.openai_summary_temperature,
            excluded_sources=settings.excluded_lead_sources,
        )

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self.api_key:
                raise LLMServiceError("OPENAI_API_KEY is not configured")
            self._client = AsyncOpenAI(api_key=self.api_key)
        return self._client

    async def _complete(self, prompt: str, temperature: float, json_mode: bool = False) -> str:
        params: Dict[str, Any] = {
            'model': self.model,
            'messages': [{'role': 'user', 'content': prompt}],
            'temperature': temperature,
        }
        if json_mode:
            params['response_format'] = {'type': 'json_object'}

        try:
            response = await self.client.chat.completions.create(**params)
        except OpenAIError as e:
            raise LLMServiceError(f"OpenAI request failed for model '{self.model}': {e}") from e

        return response.choices[0].message.content or ''

    async def extract_date_range(self, query: str, today: date) -> DateExtraction:
        """
        Ask the model for the date range and intent of ``query``.

        Raises:
            LLMResponseError: If the reply has no usable JSON object.
        """
        raw = await self._complete(
            build_date_extraction_prompt(query, today),
            temperature=self.extraction_temperature,
            json_mode=True,
        )
        logger.debug(f"Date extraction reply: {raw}")

        try:
            return DateExtraction.model_validate(extract_json_object(raw))
        except (ValueError, ValidationError) as e:
            logger.error(f"Failed to parse date extraction reply: {raw!r} ({e})")
            raise LLMResponseError("Failed to parse date information from AI", raw_text=raw) from e

    async def summarize(self, query: str, extraction: DateExtraction, metrics: MetricsResponse) -> str:
        return await self._complete(
            build_analysis_prompt(query, extraction, metrics, self.excluded_sources),
            temperature=self.summary_temperature,
        )


# =============================================================================
# ORCHESTRATION
# =============================================================================


async def answer_query(
    query: str,
    analyst: MetricsAnalyst,
    metrics_service: MetricsQueryService,
    today: Optional[date] = None,
) -> AIQueryResponse:
    """
    Answer a natural-language metrics question.

    Raises:
        LLMResponseError: If the date extraction reply is unusable.
        LLMServiceError: If the LLM provider fails.
        InvalidDateRangeError: If the extracted range is inverted.
        VendorAPIError: If the dialer fails.
    """
    today = today or date.today()

    extraction = await analyst.extract_date_range(query, today)
    logger.info(
        f"AI query '{query}' -> {extraction.startDate} to {extraction.endDate} ({extraction.intent})"
    )

    date_range = DateRange(start=extraction.startDate, end=extraction.endDate)
    metrics = await metrics_service.get_metrics(date_range)

    answer = await analyst.summarize(query, extraction, metrics)

    return AIQueryResponse(
        query=query,
        dateRange=date_range,
        intent=extraction.intent,
        answer=answer,
        dataUsed=metrics,
    )


__all__ = [
    'LLMResponseError',
    'LLMServiceError',
    'build_date_extraction_prompt',
    'build_analysis_prompt',
    'extract_json_object',
    'MetricsAnalyst',
    'OpenAIAnalyst',
    'answer_query',
]
