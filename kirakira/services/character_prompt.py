import json
from typing import Any, Dict, List

from kirakira.core.prompt_manager import prompt_manager
from kirakira.models.character import Character


def fill_placeholders(text: str, user_name: str, char_name: str) -> str:
    return text.replace("{{user}}", user_name).replace("{{char}}", char_name)


def parse_json_list(raw: str) -> List[Any]:
    """Decode a JSON-serialized list column; anything unparsable reads as empty."""
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        return []
    return value if isinstance(value, list) else []


def _format_examples(examples: List[Dict[str, str]], char_name: str) -> str:
    pairs = []
    for example in examples:
        if not isinstance(example, dict):
            continue
        pairs.append(f"User: {example.get('user', '')}\n{char_name}: {example.get('char', '')}")
    return "\n\n".join(pairs)


def build_system_prompt(character: Character, user_name: str) -> str:
    """Assemble the system instruction that keeps the model in character."""
    name = character.name

    def fill(text):
        return fill_placeholders(text, user_name, name)

    sections = []
    if character.personality:
        sections.append(("Personality", fill(character.personality)))
    if character.secret:
        sections.append(("Secret Information (Never reveal directly, but act accordingly)", fill(character.secret)))

    examples = fill(_format_examples(parse_json_list(character.example_dialogs), name))
    if examples:
        sections.append(("Example Dialogue Style", examples))

    return prompt_manager.format_template(
        "character_system",
        name=name,
        description=fill(character.description),
        sections="".join(f"\n## {title}\n{body}\n" for title, body in sections),
    )
