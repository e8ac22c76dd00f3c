"""Truco (Argentine rules) engine with a learning AI opponent."""

__version__ = "0.1.0"

from .deck import Card, Suit, card_from_code, cards_from_codes, make_deck_40
from .evaluation import card_rank, envido_value, flor_value, has_flor, hand_percentile, hand_strength
from .play import TIE, Side, round_winner, trick_winner
from .actions import Action, ActionKind
from .state import GamePhase, GameState, LearningProfile, new_profile
from .game import StepResult, apply_action, legal_actions, new_match, validate_action
from .ai import ARCHETYPES, AiDecision, TrucoAI
from .agents import AiAgent, RandomAgent
from .match import run_match, run_matches
from .persistence import (
    JsonFileProfileStore,
    MemoryProfileStore,
    ProfileValidationError,
    profile_from_json,
    profile_to_json,
)
from .config import TrucoConfig, load_config
from .session import Session
