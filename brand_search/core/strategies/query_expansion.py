"""Query expansion with synonyms and brand vocabulary."""

import logging
import re
from dataclasses import dataclass

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"[^\w\s#-]")

_STOP_WORDS = frozenset(
    {
        "a", "an", "and", "are", "do", "does", "for", "how", "i", "in", "is",
        "it", "me", "my", "of", "on", "or", "our", "the", "to", "we", "what",
        "when", "where", "which", "who", "why", "with",
    }
)

_QUESTION_WORDS = ("what", "how", "why", "when", "where", "which", "who", "can", "should")


@dataclass
class ExpandedQuery:
    original: str
    expanded: str
    terms: list[str]
    confidence: float


class QueryExpander:
    """Expand queries with static synonym and brand-term maps."""

    DEFAULT_SYNONYMS = {
        "color": ["colour", "hue", "shade", "palette"],
        "colours": ["colors"],
        "red": ["crimson", "scarlet", "ruby"],
        "orange": ["aperol", "tangerine", "coral"],
        "black": ["dark", "charcoal", "ebony"],
        "white": ["light", "cream", "vanilla", "ivory"],
        "font": ["typeface", "typography", "type"],
        "typeface": ["font", "typography"],
        "typography": ["font", "typeface", "type", "lettering"],
        "heading": ["title", "header", "headline"],
        "body": ["paragraph", "text", "copy"],
        "bold": ["heavy", "strong", "thick"],
        "logo": ["logomark", "brandmark", "mark", "symbol"],
        "brand": ["identity", "branding"],
        "identity": ["brand", "branding"],
        "guidelines": ["guide", "rules", "standards", "spec"],
        "voice": ["tone", "personality", "character"],
        "tone": ["voice", "mood", "style"],
        "style": ["aesthetic", "look", "design"],
        "design": ["style", "aesthetic", "visual"],
        "layout": ["composition", "arrangement", "structure"],
        "spacing": ["padding", "margin", "whitespace", "gap"],
        "icon": ["symbol", "glyph", "pictogram"],
        "write": ["compose", "draft", "create"],
        "writing": ["copy", "content", "text"],
        "message": ["messaging", "communication", "content"],
        "social": ["social media", "instagram", "twitter", "linkedin"],
    }

    DEFAULT_BRAND_TERMS = {
        "aperol": ["orange", "brand color", "accent", "#FE5102"],
        "charcoal": ["dark", "black", "#191919", "background"],
        "vanilla": ["cream", "light", "warm white", "#FFFAEE"],
        "glass": ["transparent", "overlay", "frost"],
        "neue haas": ["neue haas grotesk", "display font", "heading font"],
        "offbit": ["accent font", "tech font", "digital"],
        "illustration": ["illustrations", "drawings", "graphics"],
        "texture": ["textures", "pattern", "background"],
        "photo": ["photography", "image", "picture"],
    }

    def __init__(
        self,
        synonyms: dict[str, list[str]] | None = None,
        brand_terms: dict[str, list[str]] | None = None,
    ):
        """Initialize expander.

        Args:
            synonyms: Custom term -> synonyms mapping.
            brand_terms: Custom brand term -> related terms mapping.
        """
        self._synonyms = synonyms or self.DEFAULT_SYNONYMS
        self._brand_terms = brand_terms or self.DEFAULT_BRAND_TERMS

    @staticmethod
    def tokenize(query: str) -> list[str]:
        """Lower-cased content words of the query."""
        cleaned = _TOKEN_RE.sub(" ", query.lower())
        return [t for t in cleaned.split() if len(t) > 1 and t not in _STOP_WORDS]

    def _synonyms_for(self, term: str) -> list[str]:
        if term in self._synonyms:
            return self._synonyms[term]
        # Plural fallback: "colors" -> "color"
        if term.endswith("s") and term[:-1] in self._synonyms:
            return self._synonyms[term[:-1]]
        return []

    def expand(
        self,
        query: str,
        include_synonyms: bool = True,
        include_brand_terms: bool = True,
        max_expansions: int = 10,
    ) -> ExpandedQuery:
        """Expand a query with related terms.

        Args:
            query: Original query.
            include_synonyms: Add synonym terms.
            include_brand_terms: Add brand vocabulary.
            max_expansions: Cap on the total number of terms.

        Returns:
            Expanded query with terms and a confidence in [0.5, 1].
        """
        terms = self.tokenize(query)
        expansions: dict[str, None] = dict.fromkeys(terms)

        if include_synonyms:
            for term in terms:
                expansions.update(dict.fromkeys(self._synonyms_for(term)))

        if include_brand_terms:
            query_lower = query.lower()
            for key, values in self._brand_terms.items():
                if key in terms or key in query_lower:
                    expansions.update(dict.fromkeys(values))

        all_terms = list(expansions)[:max_expansions]
        unique = [t for t in all_terms if t not in terms]
        expanded = f"{query} {' '.join(unique)}" if unique else query

        return ExpandedQuery(
            original=query,
            expanded=expanded,
            terms=all_terms,
            confidence=min(1.0, 0.5 + len(unique) * 0.05),
        )

    def expand_for_hybrid(self, query: str) -> tuple[str, str]:
        """Return (semantic_query, keyword_query) for hybrid search.

        The keyword query keeps single-word terms only, capped at five.
        """
        expansion = self.expand(query, max_expansions=8)
        keyword_terms = [t for t in expansion.terms if " " not in t][:5]
        keyword_query = " ".join(keyword_terms) or query

        logger.debug(
            f"Expanded '{query}' → semantic='{expansion.expanded}', keyword='{keyword_query}'"
        )
        return expansion.expanded, keyword_query

    def should_expand(self, query: str) -> bool:
        """Short queries, brand terms and questions benefit from expansion."""
        terms = self.tokenize(query)
        if len(terms) <= 2:
            return True
        if any(t in self._brand_terms for t in terms):
            return True
        first = query.strip().lower().split(" ", 1)[0]
        return first in _QUESTION_WORDS or query.strip().endswith("?")
