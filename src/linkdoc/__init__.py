"""
linkdoc - Object-document mapping with relation population

Typed dataclass models over a JSON document store, with lifecycle hooks,
per-document virtuals and batched resolution of references between
collections.

.. py:data:: __all__
   :type: tuple[str]

   Package exports
"""

from __future__ import annotations

import logging

from .config import ConfigError, LinkdocConfig, connect, load_config
from .document import Document
from .errors import (
    HookError,
    LinkdocError,
    MalformedIdentifierError,
    PopulateError,
    RegistrationError,
    VirtualTypeError,
)
from .fields import ref
from .ids import DocId, parse_id
from .model import Model
from .query import PopulateRequest, Query
from .registry import FieldDescriptor, Registry, SchemaDescriptor
from .store import Database
from .virtuals import Virtuals

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = (
    "ConfigError",
    "Database",
    "DocId",
    "Document",
    "FieldDescriptor",
    "HookError",
    "LinkdocConfig",
    "LinkdocError",
    "MalformedIdentifierError",
    "Model",
    "PopulateError",
    "PopulateRequest",
    "Query",
    "RegistrationError",
    "Registry",
    "SchemaDescriptor",
    "Virtuals",
    "VirtualTypeError",
    "connect",
    "load_config",
    "parse_id",
    "ref",
)
__version__ = "0.1.0"
