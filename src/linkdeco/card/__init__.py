from __future__ import annotations

from linkdeco.card.engine import RuleEngine, minimal_metadata
from linkdeco.card.page import ParsedPage
from linkdeco.card.processors import PROCESSORS, execute_processor
from linkdeco.card.render import generate_card_html, generate_fallback_html
from linkdeco.card.rules import AMAZON_RULES, OGP_RULES

__all__ = [
    "AMAZON_RULES",
    "OGP_RULES",
    "PROCESSORS",
    "ParsedPage",
    "RuleEngine",
    "execute_processor",
    "generate_card_html",
    "generate_fallback_html",
    "minimal_metadata",
]
