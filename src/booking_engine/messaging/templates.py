"""
Message templates with declared placeholders.

Template messages are bound from a typed parameter record per template; the
plain-text fallbacks use ``{{name}}`` substitution restricted to the names
declared when the template is built. Unknown or missing names raise
``TemplateError`` instead of being left in the output.
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from typing import Any

from booking_engine.shared.exceptions import TemplateError

_PLACEHOLDER = re.compile(r"\{\{\s*([a-zA-Z_][a-zA-Z0-9_]*)\s*\}\}")


@dataclass(frozen=True)
class MessageTemplate:
    """A pre-approved gateway template and its ordered body parameters."""

    name: str
    placeholders: tuple[str, ...]

    def bind(self, **values: Any) -> tuple[str, ...]:
        unknown = set(values) - set(self.placeholders)
        if unknown:
            raise TemplateError(f"Template {self.name!r} has no placeholders {sorted(unknown)}")
        missing = [p for p in self.placeholders if values.get(p) in (None, "")]
        if missing:
            raise TemplateError(f"Template {self.name!r} is missing values for {missing}")
        return tuple(str(values[p]) for p in self.placeholders)

    def describe(self, bound: tuple[str, ...]) -> str:
        """Readable stand-in for the provider-rendered body."""
        return f"Template: {self.name} - {', '.join(bound)}"


@dataclass(frozen=True)
class TextTemplate:
    """Free-form body with ``{{name}}`` placeholders."""

    body: str
    declared: tuple[str, ...]

    def __post_init__(self) -> None:
        used = set(_PLACEHOLDER.findall(self.body))
        undeclared = used - set(self.declared)
        if undeclared:
            raise TemplateError(f"Body references undeclared placeholders {sorted(undeclared)}")

    def render(self, **values: Any) -> str:
        unknown = set(values) - set(self.declared)
        if unknown:
            raise TemplateError(f"Unknown placeholders {sorted(unknown)}")
        missing = [name for name in self.declared if name not in values]
        if missing:
            raise TemplateError(f"Missing values for {missing}")
        return _PLACEHOLDER.sub(lambda m: str(values[m.group(1)]), self.body)


WELCOME = MessageTemplate(
    name="initial_welcome",
    placeholders=("first_name", "agent_name", "business_name"),
)

EARLIER_SLOTS = MessageTemplate(
    name="earlier_appointment_offer",
    placeholders=(
        "first_name",
        "agent_name",
        "business_name",
        "promised_date",
        "slot_1",
        "slot_2",
    ),
)


@dataclass(frozen=True)
class WelcomeParams:
    first_name: str
    agent_name: str
    business_name: str

    def bind(self) -> tuple[str, ...]:
        return WELCOME.bind(**asdict(self))


@dataclass(frozen=True)
class EarlierSlotsParams:
    first_name: str
    agent_name: str
    business_name: str
    promised_date: str
    slot_1: str
    slot_2: str

    def bind(self) -> tuple[str, ...]:
        return EARLIER_SLOTS.bind(**asdict(self))


CHANNEL_PREFERENCE_TEXT = TextTemplate(
    body=(
        "Olá {{first_name}}! Tentamos falar por telefone. Você prefere continuar por "
        '*ligação* ou *WhatsApp*? Responda "ligar" ou "WhatsApp".'
    ),
    declared=("first_name",),
)

SLOTS_AVAILABLE_TEXT = TextTemplate(
    body=(
        "Olá {{first_name}}! Aqui é da clínica. Temos horários disponíveis para você. "
        "Qual horário seria melhor?"
    ),
    declared=("first_name",),
)
