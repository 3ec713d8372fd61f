"""
TagQuest Modules
"""
from .config import Config
from .logger import setup_logger
from .models import (
    Answer,
    CertaintyEntry,
    EngineSettings,
    MetaQuestion,
    Product,
    Question,
    Rule,
)
from .tag_parser import parse_tags
from .certainty_store import CertaintyStore
from .question_generator import generate_questions
from .rule_engine import apply_rule, apply_rules
from .meta_questions import group_meta_questions
from .session import TagSession
from .taxonomy import Taxonomy, load_taxonomy
from .catalog_loader import CatalogLoader
from .session_store import SessionStore
from .verification import DeezerClient, DiscogsClient, LookupCache, VerificationAdapter

__all__ = [
    'Config',
    'setup_logger',
    'Answer',
    'CertaintyEntry',
    'EngineSettings',
    'MetaQuestion',
    'Product',
    'Question',
    'Rule',
    'parse_tags',
    'CertaintyStore',
    'generate_questions',
    'apply_rule',
    'apply_rules',
    'group_meta_questions',
    'TagSession',
    'Taxonomy',
    'load_taxonomy',
    'CatalogLoader',
    'SessionStore',
    'DeezerClient',
    'DiscogsClient',
    'LookupCache',
    'VerificationAdapter',
]
