"""
Context variables and link placeholder substitution.

Links may carry placeholders such as ``{{ vars.api.host }}/health``. The
dotted path after ``vars.`` is looked up in a context mapping loaded once
from a JSON or YAML file before the crawl starts.
"""
from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Mapping, Optional
from urllib.parse import quote, unquote

import yaml

from linkcrawler.config import LinkCrawlerError

PLACEHOLDER_PATTERN = re.compile(r"{{\s*vars\.(.*?)\s*}}")

# Characters left untouched when re-encoding a full URI
URI_SAFE_CHARS = ";,/?:@&=+$-_.!~*'()#"

_MISSING = object()


class ContextFileError(LinkCrawlerError):
    """The context file is missing, unreadable or not a mapping."""


def load_context(path: Path) -> dict:
    """Load a context mapping from a JSON or YAML file."""
    if not path.is_file():
        raise ContextFileError(f"Context file not found: {path}")

    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ContextFileError(f"Cannot read context file {path}: {e}") from e

    try:
        if path.suffix.lower() in (".yaml", ".yml"):
            data = yaml.safe_load(text)
        else:
            data = json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ContextFileError(f"Cannot parse context file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ContextFileError(f"Context file {path} must contain a mapping at the top level")
    return data


def lookup(context: Any, dotted_path: str) -> Any:
    """Walk a dotted path through nested mappings and lists. Returns _MISSING on a miss."""
    value = context
    for key in dotted_path.split("."):
        if isinstance(value, Mapping) and key in value:
            value = value[key]
        elif isinstance(value, (list, tuple)) and key.isdigit() and int(key) < len(value):
            value = value[int(key)]
        else:
            return _MISSING
    return value


def _render(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value)


def substitute_vars(link: str, context: Optional[Mapping[str, Any]]) -> str:
    """
    Resolve ``{{ vars.<path> }}`` placeholders in a link.

    The link is percent-decoded first so that placeholders mangled by an HTML
    generator still match, then re-encoded as a URI. Placeholders whose path
    does not exist in the context are left verbatim. Without a context the
    link is returned unchanged.
    """
    if context is None:
        return link

    def replace(match: re.Match) -> str:
        value = lookup(context, match.group(1))
        return match.group(0) if value is _MISSING else _render(value)

    replaced = PLACEHOLDER_PATTERN.sub(replace, unquote(link))
    return quote(replaced, safe=URI_SAFE_CHARS)
