"""HTML metadata extraction: tokenizer, dialect models and auxiliary documents."""

from .collector import MetadataCollector, tokenize
from .linked_data import Expander, PyLdExpander, expand_linked_data
from .models import (
    Alternate,
    AppLinksDialect,
    Dialect,
    DublinCoreDialect,
    HtmlDialect,
    Icon,
    MetadataBag,
    RdfaGraph,
    SailthruDialect,
    TwitterDialect,
)
from .oembed import fetch_oembed
from .prefixes import DEFAULT_PREFIXES

__all__ = [
    "Alternate",
    "AppLinksDialect",
    "DEFAULT_PREFIXES",
    "Dialect",
    "DublinCoreDialect",
    "Expander",
    "HtmlDialect",
    "Icon",
    "MetadataBag",
    "MetadataCollector",
    "PyLdExpander",
    "RdfaGraph",
    "SailthruDialect",
    "TwitterDialect",
    "expand_linked_data",
    "fetch_oembed",
    "tokenize",
]
