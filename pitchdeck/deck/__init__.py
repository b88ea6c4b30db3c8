"""Slide layout and .pptx generation."""

from pitchdeck.deck.builder import DeckBuilder, build_deck, generate_deck
from pitchdeck.deck.slides import Deck, SlideDescription

__all__ = ["Deck", "DeckBuilder", "SlideDescription", "build_deck", "generate_deck"]
