"""
Safe .env file parser.

Parses KEY=value settings files without shell execution and lets
prefixed process environment variables override file values.
"""

import os
import re
from pathlib import Path

FORBIDDEN_PATTERNS = [
    r'`',           # backticks
    r'\$\(',        # command substitution
    r'\$\{',        # variable expansion
]

KEY_PATTERN = re.compile(r'^[A-Z][A-Z0-9_]*$')


def parse_env(text: str, source: str = "<string>") -> dict[str, str]:
    """
    Parse KEY=value lines, return dict.

    Raises:
        ValueError: if syntax invalid or forbidden pattern found
    """
    result = {}

    for lineno, line in enumerate(text.splitlines(), 1):
        line = line.strip()

        if not line or line.startswith('#'):
            continue

        if '=' not in line:
            raise ValueError(f"{source} line {lineno}: Invalid syntax (no '=')")

        key, _, value = line.partition('=')
        key = key.strip()
        value = value.strip()

        if not KEY_PATTERN.match(key):
            raise ValueError(f"{source} line {lineno}: Invalid key '{key}'")

        if len(value) >= 2:
            if (value.startswith('"') and value.endswith('"')) or \
               (value.startswith("'") and value.endswith("'")):
                value = value[1:-1]

        for pattern in FORBIDDEN_PATTERNS:
            if re.search(pattern, value):
                raise ValueError(f"{source} line {lineno}: Forbidden pattern in value")

        result[key] = value

    return result


def load_env(filepath: str | Path) -> dict[str, str]:
    """
    Parse env file safely, return dict.

    Raises:
        FileNotFoundError: if file doesn't exist
        ValueError: if syntax invalid or forbidden pattern found
    """
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"Env file not found: {filepath}")
    return parse_env(path.read_text(), source=str(path))


def overlay_environ(values: dict[str, str], prefix: str, environ: dict | None = None) -> dict[str, str]:
    """Return a copy of values with PREFIX_KEY environment variables applied.

    SCAFFOLDER_MAX_RETRIES=5 overrides MAX_RETRIES from the file.
    """
    environ = os.environ if environ is None else environ
    merged = dict(values)
    for name, value in environ.items():
        if name.startswith(prefix) and len(name) > len(prefix):
            key = name[len(prefix):]
            if KEY_PATTERN.match(key):
                merged[key] = value
    return merged
