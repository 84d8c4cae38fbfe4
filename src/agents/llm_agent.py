from openai import AsyncOpenAI
from typing import List, Optional
from src.config.settings import Settings
from src.classification.heuristic import HeuristicClassifier
from src.classification.normalizer import from_untrusted
from src.models.schemas import (
    AnalysisResult,
    AnalysisShapeError,
    CATEGORY_VALUES,
    EMOTION_VALUES,
)
import asyncio
import json
import re
import logging

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a sentiment analysis expert for banking feedback. You provide detailed, "
    "accurate analysis in JSON format. You understand Nigerian banking context and "
    "customer concerns."
)


class ChatAgent:
    """Async OpenAI chat client."""

    def __init__(self, config: Settings, client: Optional[AsyncOpenAI] = None):
        self.config = config
        # Retries are disabled: a failed call falls back instead of being repeated
        self.client = client or AsyncOpenAI(api_key=config.openai_api_key, max_retries=0)
        self.model = config.openai_llm_model
        self.temperature = config.openai_temperature
        self.max_tokens = config.openai_max_tokens

    async def chat(self, messages: List[dict], json_mode: bool = False) -> str:
        """
        Send a list of messages to the OpenAI chat model and get the response.

        Args:
            messages: List of message dicts (e.g., [{"role": "user", "content": "Hello"}])
            json_mode: Ask the model for a JSON object response

        Returns:
            The assistant's reply as a string.
        """
        kwargs = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        response = await self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            **kwargs
        )
        return response.choices[0].message.content

    async def analyze_feedback(self, comment: str, rating: int, service_type: Optional[str] = None) -> str:
        """
        Ask the model for a structured analysis of one piece of feedback.

        Args:
            comment: Customer comment
            rating: Customer rating (1-5)
            service_type: Service the feedback is about, if known

        Returns:
            The raw JSON string returned by the model
        """
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": build_analysis_prompt(comment, rating, service_type)},
        ]
        return await self.chat(messages, json_mode=True)


def build_analysis_prompt(comment: str, rating: int, service_type: Optional[str] = None) -> str:
    categories_list = "\n".join(f"   - \"{cat}\"" for cat in CATEGORY_VALUES)
    emotions_list = "\n".join(f"   - \"{emotion}\"" for emotion in EMOTION_VALUES)

    return f"""You are an expert sentiment analyst for a Nigerian banking institution. Analyze this customer feedback and provide a comprehensive analysis.

        CUSTOMER FEEDBACK:
        Comment: "{comment}"
        Rating: {rating}/5 stars
        Service Type: {service_type or 'Not specified'}

        Provide a JSON response with the following structure:

        {{
          "sentiment": "positive" | "neutral" | "negative",
          "sentimentScore": <number 0-100>,
          "categories": [<array of 1-3 categories>],
          "emotions": [<array of 1-3 emotions>],
          "urgency": "low" | "medium" | "high" | "critical",
          "actionableInsights": "<specific recommendation>",
          "confidenceScore": <number 0-100>
        }}

        FIELD DEFINITIONS:

        1. sentiment: "positive" (satisfied, praising), "neutral" (mixed or factual), "negative" (dissatisfied, complaining)

        2. sentimentScore: 0-30 very negative, 31-50 negative, 51-60 neutral, 61-80 positive, 81-100 very positive

        3. categories: Choose 1-3 most relevant from:
{categories_list}

        4. emotions: Choose 1-3 most prominent from:
{emotions_list}

        5. urgency:
           - "critical": System down, security breach, account locked (respond <1 hour)
           - "high": Major issue affecting service, very angry customer (respond <24 hours)
           - "medium": General complaint, needs attention (respond <5 days)
           - "low": Suggestion, praise, minor issue (respond <14 days)

        6. actionableInsights: Specific, brief recommendation naming the team that should act and the exact issue.
           For positive feedback, suggest what to continue or expand.

        7. confidenceScore: Your confidence in this analysis (0-100)

        IMPORTANT: Respond ONLY with valid JSON. No markdown, no explanation, just the JSON object."""


def parse_analysis_response(response: Optional[str]) -> dict:
    """
    Parse the model reply into a JSON object.

    Raises:
        AnalysisShapeError: If the reply is empty or not valid JSON
    """
    if not response:
        raise AnalysisShapeError("Empty analysis response")
    # Remove markdown code blocks if present
    cleaned = re.sub(r'```json\s*|\s*```', '', response).strip()
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise AnalysisShapeError(f"Analysis response is not valid JSON: {e}") from e


class AIClassifier:
    """Classify feedback with the chat model, falling back to the heuristic classifier."""

    def __init__(
        self,
        agent: ChatAgent,
        fallback: Optional[HeuristicClassifier] = None,
        timeout: float = 15.0,
    ):
        """
        Initialize the classifier.

        Args:
            agent: Chat collaborator, owned by the caller
            fallback: Classifier used when the AI path fails
            timeout: Per-call timeout in seconds
        """
        self.agent = agent
        self.fallback = fallback or HeuristicClassifier()
        self.timeout = timeout

    @property
    def model(self) -> str:
        return self.agent.model

    async def classify(
        self,
        comment: str,
        rating: int,
        service_type: Optional[str] = None,
        reference: Optional[str] = None,
    ) -> AnalysisResult:
        """
        Classify one piece of feedback. Never raises.

        Args:
            comment: Customer comment
            rating: Customer rating (1-5)
            service_type: Service the feedback is about, if known
            reference: Record reference quoted when the insights need manual review

        Returns:
            The normalized AI analysis, or the heuristic analysis when the AI
            call times out, fails or returns a malformed payload.
        """
        logger.info(f"Starting AI sentiment analysis (rating {rating}/5): \"{comment[:50]}\"")
        try:
            response = await asyncio.wait_for(
                self.agent.analyze_feedback(comment, rating, service_type),
                timeout=self.timeout
            )
            analysis = from_untrusted(parse_analysis_response(response), rating=rating, reference=reference)
        except asyncio.TimeoutError:
            logger.warning(f"AI analysis timed out after {self.timeout}s. Using fallback analysis.")
            return self.fallback.classify(comment, rating)
        except AnalysisShapeError as e:
            logger.warning(f"Malformed AI analysis response: {e}. Using fallback analysis.")
            return self.fallback.classify(comment, rating)
        except Exception as e:
            # Transport and API errors all take the degraded path
            logger.warning(f"AI analysis failed: {e}. Using fallback analysis.")
            return self.fallback.classify(comment, rating)

        logger.info(
            f"AI analysis completed: {analysis.sentiment} ({analysis.sentiment_score}/100), "
            f"urgency {analysis.urgency}"
        )
        return analysis
