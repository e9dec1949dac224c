import re
import logging
from abc import ABC, abstractmethod
from typing import List, Optional

from helpdesk_rules.core.config import settings
from helpdesk_rules.schemas.rule import MessageAnalysisResult, MessageAnalysisRule

logger = logging.getLogger(__name__)


def contains_phrase(text: str, phrase: str) -> bool:
    """Case-insensitive phrase match that does not fire inside longer words."""
    phrase = phrase.strip()
    if not phrase:
        return False
    return re.search(rf"(?<!\w){re.escape(phrase)}(?!\w)", text, re.IGNORECASE) is not None


class ContentAnalyzer(ABC):
    """Scores an inbound message for content-based rules. Any backend satisfying analyze() can be plugged in."""

    @abstractmethod
    def analyze(self, message_content: str, rules: MessageAnalysisRule) -> MessageAnalysisResult:
        ...


class MessageAnalysisService(ContentAnalyzer):
    """Lexical analyzer: keyword, urgency, sentiment and language signals"""

    # Keywords for common categories
    DEFAULT_CATEGORY_KEYWORDS = {
        'support': ['help', 'assistance', 'support', 'problema', 'issue', 'trouble', 'error', 'bug', 'ayuda'],
        'billing': ['payment', 'bill', 'invoice', 'charge', 'cost', 'price', 'refund', 'factura', 'pago', 'cobro'],
        'technical': ['technical', 'system', 'server', 'database', 'api', 'integration', 'técnico', 'sistema'],
        'complaint': ['complain', 'angry', 'disappointed', 'terrible', 'awful', 'worst', 'horrible', 'mal servicio', 'quejas'],
        'praise': ['excellent', 'great', 'amazing', 'wonderful', 'fantastic', 'love', 'perfect', 'excelente', 'genial']
    }

    # Used to fill content rules saved without urgency keywords
    DEFAULT_URGENCY_KEYWORDS = [
        'urgent', 'emergency', 'critical', 'asap', 'immediately', 'right now',
        'not working', 'down', 'blocked', 'urgente', 'emergencia', 'crítico'
    ]

    POSITIVE_WORDS = ['good', 'great', 'excellent', 'happy', 'satisfied', 'love', 'perfect', 'thanks',
                      'bueno', 'excelente', 'feliz', 'gracias']
    NEGATIVE_WORDS = ['bad', 'terrible', 'awful', 'hate', 'angry', 'disappointed', 'worst', 'horrible',
                      'unacceptable', 'frustrated', 'malo', 'odio', 'pésimo']

    SPANISH_INDICATORS = {'el', 'la', 'de', 'que', 'y', 'en', 'un', 'es', 'se', 'no', 'te', 'lo', 'le', 'su',
                          'por', 'son', 'con', 'para', 'está', 'como', 'pero', 'muy', 'más'}
    ENGLISH_INDICATORS = {'the', 'and', 'of', 'to', 'a', 'in', 'is', 'it', 'you', 'that', 'was', 'for', 'on',
                          'are', 'as', 'with', 'they', 'at', 'be', 'this', 'have', 'from', 'or', 'but', 'not',
                          'what', 'all', 'were', 'we', 'when', 'please', 'my'}

    # Sentiment below this (and not above the rule's threshold) escalates urgency to medium
    NEGATIVE_ESCALATION = -0.5
    # |sentiment| at or above this counts as a sentiment signal
    SENTIMENT_SIGNAL = 0.1

    def analyze(self, message_content: str, rules: MessageAnalysisRule) -> MessageAnalysisResult:
        """
        Analyze message content against a rule's analysis settings.

        Confidence is the share of the four signals (keyword match, urgency
        match, sentiment signal, language match) that fired. A signal whose
        constraint the rule leaves unconfigured counts as fired. Any exclude
        keyword in the message vetoes the result: confidence drops to 0.
        """
        if not message_content or not isinstance(message_content, str):
            return self._default_analysis_result()

        message_lower = message_content.lower().strip()

        sentiment = self._analyze_sentiment(message_lower)
        keywords_found = self._find_keywords(message_lower, rules.keywords)
        excluded_found = self._find_keywords(message_lower, rules.exclude_keywords)
        urgency_matched = any(contains_phrase(message_lower, kw) for kw in rules.urgency_keywords)
        urgency_level = self._urgency_level(urgency_matched, sentiment, rules.sentiment_threshold)
        categories = self._detect_categories(message_lower)
        language = self._detect_language(message_lower)

        if excluded_found:
            logger.info(f"Message vetoed by exclude keywords: {excluded_found}")
            confidence = 0.0
        else:
            confidence = self._calculate_confidence(
                keyword_signal=bool(keywords_found) if rules.keywords else True,
                urgency_signal=urgency_matched if rules.urgency_keywords else True,
                sentiment_signal=abs(sentiment) >= self.SENTIMENT_SIGNAL,
                language_signal=(language == rules.language.lower()) if rules.language else True,
            )

        return MessageAnalysisResult(
            sentiment=sentiment,
            urgency_level=urgency_level,
            keywords_found=keywords_found,
            excluded_keywords_found=excluded_found,
            categories=categories,
            language=language,
            confidence=confidence,
            vetoed=bool(excluded_found),
        )

    @classmethod
    def _analyze_sentiment(cls, message: str) -> float:
        """Simple sentiment analysis using keyword counting"""
        positive_count = sum(1 for word in cls.POSITIVE_WORDS if contains_phrase(message, word))
        negative_count = sum(1 for word in cls.NEGATIVE_WORDS if contains_phrase(message, word))

        total_sentiment_words = positive_count + negative_count
        if total_sentiment_words == 0:
            return 0.0  # Neutral

        # Scale from -1 to 1
        sentiment_score = (positive_count - negative_count) / total_sentiment_words
        return max(-1.0, min(1.0, sentiment_score))

    @classmethod
    def _urgency_level(cls, urgency_matched: bool, sentiment: float, threshold: Optional[float]) -> str:
        if urgency_matched:
            return 'high'
        counts_toward_urgency = threshold is None or sentiment <= threshold
        if sentiment < cls.NEGATIVE_ESCALATION and counts_toward_urgency:
            return 'medium'
        return 'low'

    @classmethod
    def _detect_categories(cls, message: str) -> List[str]:
        categories = []
        for category, keywords in cls.DEFAULT_CATEGORY_KEYWORDS.items():
            if any(contains_phrase(message, keyword) for keyword in keywords):
                categories.append(category)
        return categories

    @classmethod
    def _find_keywords(cls, message: str, keywords: List[str]) -> List[str]:
        """Case-insensitive substring match; returns the keywords as configured"""
        return [keyword for keyword in keywords if keyword.strip() and keyword.strip().lower() in message]

    @classmethod
    def _detect_language(cls, message: str) -> str:
        """Basic language detection"""
        words = re.findall(r"\w+", message)
        spanish_count = sum(1 for word in words if word in cls.SPANISH_INDICATORS)
        english_count = sum(1 for word in words if word in cls.ENGLISH_INDICATORS)

        if spanish_count > english_count:
            return 'es'
        elif english_count > spanish_count:
            return 'en'
        else:
            return 'unknown'

    @classmethod
    def _calculate_confidence(cls, *, keyword_signal: bool, urgency_signal: bool,
                              sentiment_signal: bool, language_signal: bool) -> float:
        signals = [keyword_signal, urgency_signal, sentiment_signal, language_signal]
        return round(sum(signals) / len(signals), 4)

    @classmethod
    def _default_analysis_result(cls) -> MessageAnalysisResult:
        """Result for empty or non-text messages"""
        return MessageAnalysisResult(
            sentiment=0.0,
            urgency_level='low',
            keywords_found=[],
            categories=[],
            language='unknown',
            confidence=0.0
        )


def get_default_message_analysis_rules() -> MessageAnalysisRule:
    """Default analysis rules for content-based workflows"""
    return MessageAnalysisRule(
        keywords=[],
        exclude_keywords=[],
        urgency_keywords=list(MessageAnalysisService.DEFAULT_URGENCY_KEYWORDS),
        min_confidence=settings.DEFAULT_MIN_CONFIDENCE,
    )


def passes_gate(analysis: MessageAnalysisResult, rules: MessageAnalysisRule) -> bool:
    """A content-based rule may fire only if not vetoed and confident enough."""
    return not analysis.vetoed and analysis.confidence >= rules.min_confidence


def check_trigger_match(analysis: MessageAnalysisResult, trigger: str, rules: Optional[MessageAnalysisRule] = None) -> bool:
    """
    Check if the analysis results match the workflow trigger
    """
    if trigger == 'message.received':
        return True

    elif trigger == 'message.contains_keywords':
        return len(analysis.keywords_found) > 0

    elif trigger == 'message.sentiment_negative':
        threshold = rules.sentiment_threshold if rules and rules.sentiment_threshold is not None else -0.1
        return analysis.sentiment < threshold

    elif trigger == 'message.sentiment_positive':
        threshold = rules.sentiment_threshold if rules and rules.sentiment_threshold is not None else 0.1
        return analysis.sentiment > threshold

    elif trigger == 'message.urgency_high':
        return analysis.urgency_level == 'high'

    elif trigger == 'message.urgency_medium':
        return analysis.urgency_level in ['high', 'medium']

    elif trigger == 'message.language_detected':
        return bool(rules and rules.language and analysis.language == rules.language.lower())

    elif trigger.startswith('message.category_'):
        category = trigger.replace('message.category_', '')
        return category in analysis.categories

    elif not trigger.startswith('message.'):
        return True

    return False
