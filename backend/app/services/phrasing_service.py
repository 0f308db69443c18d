"""
Phrasing Service - turns conversation decisions and engine output into text.

Providers are tried in a fixed preference order, first success wins:
1. Remote/local LLM backends (OpenAI, Ollama, Hugging Face), each with a
   bounded timeout
2. TemplatePhrasingProvider, always last, deterministic and unable to fail

A provider failure never reaches the caller; it is logged and the next
provider is tried.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

import requests
from openai import OpenAI, APIError, APITimeoutError
from pydantic import BaseModel, Field

from app.config import settings
from engine.models import ChatMessage, Role, ScoredCard, Step, UserProfile
from engine.state import missing_fields, next_step

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = """You are a friendly credit card advisor for the Indian market.
Help the user find a credit card that suits their income, credit score and spending.

Guidelines:
- Ask exactly one question at a time
- Keep replies under 3-4 sentences
- Use Indian rupees (₹) for every amount
- Never invent card features, fees or reward rates"""

# Reply texts keyed by the step whose answer was just handled
STEP_RESPONSES = {
    Step.GREETING: (
        "Hello! I'm your personal credit card advisor. I'll help you find the right credit card "
        "for your needs and spending habits. To get started, could you tell me your approximate "
        "monthly income?"
    ),
    Step.INCOME: (
        "Great! Now, do you know your credit score? It typically ranges from 300-900. "
        "If you're not sure, that's perfectly fine - just let me know!"
    ),
    Step.CREDIT_SCORE: (
        "Excellent! Now let's talk about your spending habits. How much do you typically spend "
        "each month on dining, travel, fuel, groceries and online shopping?"
    ),
    Step.SPENDING: (
        "That's helpful! What type of rewards do you prefer - cashback, travel points, or "
        "specific benefits like airport lounge access?"
    ),
    Step.PREFERENCES: (
        "Almost done! Do you prefer cashback or reward points? You can also tell me the "
        "maximum annual fee you're comfortable with."
    ),
    Step.COMPLETE: (
        "Perfect! I have everything I need. Let me match your profile against our catalog "
        "of Indian credit cards."
    ),
}

# Quick replies answering the question asked by STEP_RESPONSES[step]
STEP_SUGGESTIONS = {
    Step.GREETING: [
        "₹30,000 per month",
        "₹50,000 per month",
        "₹1,00,000 per month",
        "₹2,00,000 per month",
    ],
    Step.INCOME: [
        "750-800 (Excellent)",
        "650-750 (Good)",
        "I don't know my score",
    ],
    Step.CREDIT_SCORE: [
        "₹5,000 on dining",
        "₹10,000 on fuel",
        "₹15,000 on groceries",
        "₹20,000 on travel",
    ],
    Step.SPENDING: [
        "I prefer cashback",
        "I want travel points",
        "Airport lounge access is important",
    ],
    Step.PREFERENCES: [
        "I prefer cashback",
        "I want reward points",
        "No annual fee cards only",
    ],
    Step.COMPLETE: [],
}

RECOMMENDATION_SUGGESTIONS = ["Show me more details", "Compare these cards", "Find different options"]

HISTORY_WINDOW = 10
MIN_GENERATED_LENGTH = 10


class ProviderError(Exception):
    """A phrasing provider was unreachable or produced unusable output."""


class PhrasedReply(BaseModel):
    """
    A provider's rendering of one conversational turn.

    next_step is informational only; the conversation state machine decides
    the step that is stored on the session.
    """
    message: str = Field(..., min_length=1, description="Reply text shown to the user")
    next_step: Step = Field(..., description="Step the provider expects to come next")
    suggestions: List[str] = Field(default_factory=list, description="Quick reply suggestions")
    provider: str = Field(..., description="Name of the provider that produced the reply")


def format_inr(amount: int) -> str:
    """
    Format a rupee amount with Indian digit grouping.

    Example:
        >>> format_inr(150000)
        '₹1,50,000'
    """
    sign = "-" if amount < 0 else ""
    digits = str(abs(int(amount)))
    if len(digits) > 3:
        head, tail = digits[:-3], digits[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        digits = ",".join(groups + [tail])
    return f"{sign}₹{digits}"


def build_context(profile: UserProfile, step: Step) -> str:
    """Summarize what is known and what is still needed, for LLM prompts."""
    lines = [f"Current conversation step: {step.value}"]
    if profile.monthly_income:
        lines.append(f"User's monthly income: {format_inr(profile.monthly_income)}")
    if profile.credit_score is not None:
        lines.append(f"Credit score: {profile.credit_score}")
    spending = {category: amount for category, amount in profile.spending_habits.items() if amount > 0}
    if spending:
        lines.append(
            "Monthly spending: "
            + ", ".join(f"{category} {format_inr(amount)}" for category, amount in spending.items())
        )
    if profile.preferences.reward_type is not None:
        lines.append(f"Preferred reward type: {profile.preferences.reward_type.value}")

    missing = missing_fields(profile)
    if missing:
        lines.append(f"Still needed: {', '.join(missing)}")
        lines.append("Ask naturally about the next missing piece of information.")
    else:
        lines.append("Profile is complete. Recommendations are being prepared.")
    return "\n".join(lines)


def build_explanation_prompt(cards: Sequence[ScoredCard], profile: UserProfile) -> str:
    """Grounded prompt listing the ranked cards with their computed metrics."""
    income = format_inr(profile.monthly_income) if profile.monthly_income else "an unknown amount"
    prompt = (
        f"As a credit card advisor, explain why these cards are recommended for a user "
        f"with a monthly income of {income}.\n\nRanked cards (ground truth, do not change the numbers):"
    )
    for rank, scored in enumerate(cards, start=1):
        card = scored.card
        prompt += (
            f"\n{rank}. {card.name} ({card.issuer}) - annual fee {format_inr(card.annual_fee)}, "
            f"estimated annual reward {format_inr(scored.estimated_annual_reward)}, "
            f"net value {format_inr(scored.net_value)}"
        )
        if scored.reasons_to_choose:
            prompt += f"; reasons: {'; '.join(scored.reasons_to_choose)}"
    prompt += "\n\nFocus on the top card. Keep it under 100 words and use ₹ for amounts."
    return prompt


class PhrasingProvider(ABC):
    """Capability interface shared by every phrasing backend."""

    name = "base"

    @abstractmethod
    def is_available(self) -> bool:
        """Cheap check whether the provider can be tried right now."""

    @abstractmethod
    def generate_response(
        self, history: Sequence[ChatMessage], profile: UserProfile, step: Step
    ) -> PhrasedReply:
        """Reply for a turn handled at `step`. Raises ProviderError on failure."""

    @abstractmethod
    def generate_recommendation_explanation(
        self, cards: Sequence[ScoredCard], profile: UserProfile
    ) -> str:
        """Narrative for a ranked card list. Raises ProviderError on failure."""

    def _reply(self, message: Optional[str], profile: UserProfile, step: Step) -> PhrasedReply:
        text = (message or "").strip()
        if not text:
            raise ProviderError(f"{self.name} returned an empty reply")
        return PhrasedReply(
            message=text,
            next_step=next_step(profile, step),
            suggestions=list(STEP_SUGGESTIONS.get(step, [])),
            provider=self.name,
        )


class TemplatePhrasingProvider(PhrasingProvider):
    """
    Deterministic canned replies.

    Always available and never raises, so it terminates every chain.
    """

    name = "template"

    def is_available(self) -> bool:
        return True

    def generate_response(self, history, profile, step):
        return PhrasedReply(
            message=STEP_RESPONSES.get(step, STEP_RESPONSES[Step.GREETING]),
            next_step=next_step(profile, step),
            suggestions=list(STEP_SUGGESTIONS.get(step, [])),
            provider=self.name,
        )

    def generate_recommendation_explanation(self, cards, profile):
        if not cards:
            return (
                "I couldn't find a card that fits your profile right now. "
                "Try relaxing your annual fee limit or reward preference."
            )

        top = cards[0]
        income = format_inr(profile.monthly_income) if profile.monthly_income else "your income"
        lines = [
            f"Based on your monthly income of {income} and your spending pattern, "
            f"here are my top recommendations.",
            "",
            f"**{top.card.name}** from {top.card.issuer} is my #1 pick for you:",
        ]
        lines.extend(f"• {reason}" for reason in top.reasons_to_choose)
        lines.append(
            f"• Estimated annual rewards of {format_inr(top.estimated_annual_reward)} "
            f"against an annual fee of {format_inr(top.card.annual_fee)}"
        )
        lines.append("")
        lines.append(
            f"I've ranked {len(cards)} card{'s' if len(cards) != 1 else ''} by overall value "
            f"for your profile. Ready to explore the details?"
        )
        return "\n".join(lines)


class OpenAIPhrasingProvider(PhrasingProvider):
    """
    OpenAI chat completions with bounded timeout and retries.

    Usage:
        provider = OpenAIPhrasingProvider()
        if provider.is_available():
            reply = provider.generate_response(history, profile, Step.INCOME)
    """

    name = "openai"

    def __init__(self, client: Optional[OpenAI] = None):
        self.client = client
        if self.client is None and settings.OPENAI_API_KEY:
            try:
                self.client = OpenAI(
                    api_key=settings.OPENAI_API_KEY,
                    timeout=float(settings.PROVIDER_TIMEOUT_SECONDS),
                    max_retries=settings.LLM_MAX_RETRIES,
                )
                logger.info(f"OpenAI client initialized with model: {settings.LLM_MODEL}")
            except Exception as e:
                logger.warning(f"Failed to initialize OpenAI client: {e}. Provider disabled.")
                self.client = None
        elif self.client is None:
            logger.warning("OPENAI_API_KEY not set. OpenAI phrasing provider disabled.")

    def is_available(self) -> bool:
        return self.client is not None

    def generate_response(self, history, profile, step):
        messages = [{"role": "system", "content": SYSTEM_PROMPT}]
        for message in list(history)[-HISTORY_WINDOW:]:
            messages.append(
                {
                    "role": "user" if message.role == Role.USER else "assistant",
                    "content": message.text,
                }
            )
        messages.append({"role": "system", "content": build_context(profile, step)})
        return self._reply(self._complete(messages), profile, step)

    def generate_recommendation_explanation(self, cards, profile):
        text = self._complete(
            [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_explanation_prompt(cards, profile)},
            ]
        )
        if not text:
            raise ProviderError("openai returned an empty explanation")
        return text

    def _complete(self, messages: List[dict]) -> str:
        if self.client is None:
            raise ProviderError("OpenAI client not configured")
        try:
            response = self.client.chat.completions.create(
                model=settings.LLM_MODEL,
                messages=messages,
                temperature=settings.LLM_TEMPERATURE,
                max_tokens=settings.LLM_MAX_TOKENS,
            )
        except APITimeoutError as e:
            raise ProviderError(f"OpenAI API timeout after {settings.PROVIDER_TIMEOUT_SECONDS}s") from e
        except APIError as e:
            raise ProviderError(f"OpenAI API error: {e}") from e
        return (response.choices[0].message.content or "").strip()


class OllamaPhrasingProvider(PhrasingProvider):
    """Local models served by Ollama over its HTTP API."""

    name = "ollama"

    def __init__(self, base_url: Optional[str] = None, model: Optional[str] = None):
        self.base_url = (base_url or settings.OLLAMA_URL).rstrip("/")
        self.model = model or settings.OLLAMA_MODEL
        self.timeout = settings.PROVIDER_TIMEOUT_SECONDS

    def is_available(self) -> bool:
        try:
            response = requests.get(f"{self.base_url}/api/version", timeout=self.timeout)
            return response.ok
        except requests.RequestException as e:
            logger.debug(f"Ollama not available: {e}")
            return False

    def generate_response(self, history, profile, step):
        conversation = "\n".join(
            f"{'User' if message.role == Role.USER else 'Assistant'}: {message.text}"
            for message in list(history)[-6:]
        )
        prompt = (
            f"{SYSTEM_PROMPT}\n\n{build_context(profile, step)}\n\n{conversation}\n\n"
            "Respond as a helpful credit card advisor and ask the next logical question."
        )
        return self._reply(self._generate(prompt, num_predict=150), profile, step)

    def generate_recommendation_explanation(self, cards, profile):
        text = self._generate(build_explanation_prompt(cards, profile), num_predict=120)
        if not text:
            raise ProviderError("ollama returned an empty explanation")
        return text

    def _generate(self, prompt: str, num_predict: int) -> str:
        try:
            response = requests.post(
                f"{self.base_url}/api/generate",
                json={
                    "model": self.model,
                    "prompt": prompt,
                    "stream": False,
                    "options": {
                        "temperature": settings.LLM_TEMPERATURE,
                        "top_k": 40,
                        "top_p": 0.9,
                        "num_predict": num_predict,
                    },
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            raise ProviderError(f"Ollama API error: {e}") from e

        text = data.get("response") if isinstance(data, dict) else None
        if not isinstance(text, str):
            raise ProviderError("Ollama returned an unexpected response format")
        return text.strip()


class HuggingFacePhrasingProvider(PhrasingProvider):
    """Hugging Face hosted inference API. Needs HUGGINGFACE_API_KEY."""

    name = "huggingface"

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        self.api_key = api_key or settings.HUGGINGFACE_API_KEY
        self.model = model or settings.HUGGINGFACE_MODEL
        self.timeout = settings.PROVIDER_TIMEOUT_SECONDS

    def is_available(self) -> bool:
        return bool(self.api_key)

    def generate_response(self, history, profile, step):
        last_message = history[-1].text if history else ""
        prompt = f"{build_context(profile, step)}\nUser: {last_message}\nAssistant:"
        return self._reply(self._generate(prompt), profile, step)

    def generate_recommendation_explanation(self, cards, profile):
        return self._generate(build_explanation_prompt(cards, profile))

    def _generate(self, prompt: str) -> str:
        if not self.api_key:
            raise ProviderError("Hugging Face API key not configured")
        try:
            response = requests.post(
                f"{settings.HUGGINGFACE_URL}/{self.model}",
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={
                    "inputs": prompt,
                    "parameters": {"max_new_tokens": 150, "temperature": settings.LLM_TEMPERATURE},
                    "options": {"wait_for_model": True},
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            raise ProviderError(f"Hugging Face API error: {e}") from e

        if isinstance(data, list) and data and isinstance(data[0], dict):
            generated = data[0].get("generated_text")
        elif isinstance(data, dict):
            generated = data.get("generated_text")
        else:
            generated = None
        if not isinstance(generated, str):
            raise ProviderError("Hugging Face returned an unexpected response format")

        text = generated.replace(prompt, "").strip()
        if len(text) < MIN_GENERATED_LENGTH:
            raise ProviderError("Hugging Face reply too short to use")
        return text


class PhrasingChain:
    """
    Ordered provider list with first-success-wins semantics.

    A TemplatePhrasingProvider is appended when the list does not already
    end with one, so every call returns a result.

    Usage:
        chain = PhrasingChain([OpenAIPhrasingProvider()])
        reply = chain.generate_response(session.chat_history, session.profile, Step.INCOME)
    """

    def __init__(self, providers: Sequence[PhrasingProvider] = ()):
        self.providers: List[PhrasingProvider] = list(providers)
        if not self.providers or not isinstance(self.providers[-1], TemplatePhrasingProvider):
            self.providers.append(TemplatePhrasingProvider())

    @property
    def provider_names(self) -> List[str]:
        return [provider.name for provider in self.providers]

    def generate_response(
        self, history: Sequence[ChatMessage], profile: UserProfile, step: Step
    ) -> PhrasedReply:
        for provider in self._candidates():
            try:
                reply = provider.generate_response(history, profile, step)
            except Exception as e:
                logger.error(f"Phrasing provider {provider.name} failed: {e}, trying next provider")
                continue
            logger.debug(f"Reply generated by {provider.name}")
            return reply
        return self.providers[-1].generate_response(history, profile, step)

    def generate_recommendation_explanation(
        self, cards: Sequence[ScoredCard], profile: UserProfile
    ) -> str:
        for provider in self._candidates():
            try:
                text = (provider.generate_recommendation_explanation(cards, profile) or "").strip()
            except Exception as e:
                logger.error(f"Explanation with {provider.name} failed: {e}, trying next provider")
                continue
            if text:
                return text
            logger.warning(f"{provider.name} returned an empty explanation, trying next provider")
        return self.providers[-1].generate_recommendation_explanation(cards, profile)

    def _candidates(self):
        for provider in self.providers:
            try:
                available = provider.is_available()
            except Exception as e:
                logger.warning(f"Availability check for {provider.name} failed: {e}")
                available = False
            if available:
                yield provider
            else:
                logger.debug(f"Phrasing provider {provider.name} unavailable, skipping")


PROVIDER_REGISTRY = {
    "openai": OpenAIPhrasingProvider,
    "ollama": OllamaPhrasingProvider,
    "huggingface": HuggingFacePhrasingProvider,
}


def build_default_chain(names: Optional[Sequence[str]] = None) -> PhrasingChain:
    """
    Build the chain from PHRASING_PROVIDERS (or `names`).

    Unknown names are skipped with a warning. "template" may be listed but is
    always placed last regardless.
    """
    providers = []
    for name in names if names is not None else settings.PHRASING_PROVIDERS:
        key = name.strip().lower()
        if key == TemplatePhrasingProvider.name:
            continue
        provider_cls = PROVIDER_REGISTRY.get(key)
        if provider_cls is None:
            logger.warning(f"Unknown phrasing provider '{name}' ignored")
            continue
        providers.append(provider_cls())

    chain = PhrasingChain(providers)
    logger.info(f"Phrasing providers in order: {', '.join(chain.provider_names)}")
    return chain
