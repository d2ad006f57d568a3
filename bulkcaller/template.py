import json
import re
from collections.abc import Mapping, Sequence

from bulkcaller.errors import InvalidPayloadError


PLACEHOLDER_RE = re.compile(r"\$\{([^}]+)\}")


def extract_placeholders(template: str) -> list[str]:
    names: list[str] = []
    seen: set[str] = set()
    for match in PLACEHOLDER_RE.finditer(template):
        name = match.group(1).strip()
        if name in seen:
            continue
        seen.add(name)
        names.append(name)
    return names


def substitute(template: str, values: Mapping[str, str]) -> str:
    result = template
    for key, value in values.items():
        result = result.replace("${" + key + "}", value)
    return result


def render(template: str, header: Sequence[str], row: Sequence[str]) -> str:
    # Columns without a cell in this row leave their placeholder untouched.
    result = template
    for position, name in enumerate(header):
        if position < len(row):
            result = result.replace("${" + name + "}", row[position])
    return result


def validate_json(body: str) -> None:
    try:
        json.loads(body)
    except json.JSONDecodeError as exc:
        raise InvalidPayloadError(f"invalid JSON: {exc}") from exc
