"""
Secrets resolution for source configuration.
Resolves {{SECRET:NAME}} placeholders from environment variables.
"""
import os
import re
import logging
from typing import Any, Dict, List

logger = logging.getLogger(__name__)

SECRET_PATTERN = re.compile(r'\{\{SECRET:([A-Za-z0-9_]+)\}\}')
SENSITIVE_KEYS = {'token', 'password', 'api_key', 'secret', 'client_secret'}
REDACTED = '***'


def resolve_secrets(value: Any) -> Any:
    """
    Resolve {{SECRET:NAME}} patterns in a value.

    Strings are substituted, dicts and lists are resolved recursively, other types
    are returned as-is. A placeholder whose variable is not set is left in place.
    """
    if isinstance(value, str):
        def replace_secret(match):
            secret_name = match.group(1)
            secret_value = os.getenv(secret_name)
            if secret_value is None:
                logger.warning(f"[secrets] Secret '{secret_name}' not found in environment")
                return match.group(0)
            return secret_value

        return SECRET_PATTERN.sub(replace_secret, value)
    elif isinstance(value, dict):
        return {k: resolve_secrets(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [resolve_secrets(item) for item in value]
    return value


def find_missing_secrets(value: Any) -> List[str]:
    """Names of referenced secrets that are not set in the environment, in first-seen order."""
    missing: List[str] = []

    def visit(item: Any):
        if isinstance(item, str):
            for match in SECRET_PATTERN.finditer(item):
                name = match.group(1)
                if os.getenv(name) is None and name not in missing:
                    missing.append(name)
        elif isinstance(item, dict):
            for v in item.values():
                visit(v)
        elif isinstance(item, list):
            for v in item:
                visit(v)

    visit(value)
    return missing


def redact_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of a source config safe to return from the admin API (credentials replaced)."""
    def redact(key: str, item: Any) -> Any:
        if isinstance(item, dict):
            return {k: redact(k, v) for k, v in item.items()}
        if isinstance(item, list):
            return [redact(key, v) for v in item]
        if key.lower() in SENSITIVE_KEYS and item and not SECRET_PATTERN.fullmatch(str(item)):
            return REDACTED
        return item

    return {k: redact(k, v) for k, v in (config or {}).items()}
