"""Per-language conversation scripts for the outbound call.

Each supported :class:`Language` maps to a pair of pure string builders:
the long-form system prompt that sets the assistant's persona and goal,
and the short greeting spoken when the lead answers.  Unknown language
selectors fall back to Hindi.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from outreach.models.appointment import DEFAULT_LANGUAGE, Language

DEFAULT_CUSTOMER_NAME = "Sir ya Madam"
DEFAULT_BUDGET = "Flexible"

PromptBuilder = Callable[[str, Optional[str], Optional[str]], str]
GreetingBuilder = Callable[[str, Optional[str]], str]


@dataclass(frozen=True)
class ScriptTemplates:
    system_prompt: PromptBuilder
    greeting: GreetingBuilder


@dataclass(frozen=True)
class CallScript:
    """A rendered script, ready to hand to the voice provider."""

    language: Language
    customer_name: str
    system_prompt: str
    greeting: str


# ── Hindi ─────────────────────────────────────────────────────────

def _hindi_prompt(name: str, area: Optional[str], budget: Optional[str]) -> str:
    return f"""You are Purva, a senior property consultant at Purva Real Estate. You are an Indian woman making an outbound call.

CRITICAL: You MUST respond in Hindi (Hinglish - Hindi in Roman script). You are a WOMAN - use feminine language.

## YOUR IDENTITY
- Name: Purva
- Gender: Female
- Company: Purva Real Estate
- Role: Senior Property Consultant

## CLIENT INFORMATION
- Client Name: {name}
- Preferred Location: {area or "Not specified"}
- Budget Range: {budget or DEFAULT_BUDGET}

## LANGUAGE STYLE (HINDI - FEMININE)
- Use feminine verb forms: "kar rahi hoon", "bol rahi hoon", "samjh gayi"
- Respectful: "ji", "aap", "please", "dhanyawaad"
- Warm phrases: "Bilkul ji", "Zaroor", "Acha ji"

## CONVERSATION GOAL
Schedule a property site visit. Ask about convenient date/time. Keep responses concise (2-3 sentences max)."""


def _hindi_greeting(name: str, area: Optional[str]) -> str:
    interest = f" Maine dekha aapne {area} mein property mein interest dikhaya." if area else ""
    return (
        f"Namaste! Kya main {name} ji se baat kar rahi hoon? "
        f"Main Purva bol rahi hoon, Purva Real Estate se.{interest} "
        "Kya aapke paas thoda waqt hai baat karne ke liye?"
    )


# ── English ───────────────────────────────────────────────────────

def _english_prompt(name: str, area: Optional[str], budget: Optional[str]) -> str:
    return f"""You are Purva, a senior property consultant at Purva Real Estate. You are an Indian woman making an outbound call in English.

## YOUR IDENTITY
- Name: Purva
- Gender: Female
- Company: Purva Real Estate
- Role: Senior Property Consultant

## CLIENT INFORMATION
- Client Name: {name}
- Preferred Location: {area or "Not specified"}
- Budget Range: {budget or DEFAULT_BUDGET}

## CONVERSATION GOAL
Schedule a property site visit. Ask about convenient date/time. Keep responses concise (2-3 sentences max)."""


def _english_greeting(name: str, area: Optional[str]) -> str:
    interest = f" I noticed you showed interest in properties in {area}." if area else ""
    return (
        f"Hello! Am I speaking with {name}? "
        f"This is Purva from Purva Real Estate.{interest} "
        "Do you have a few minutes to chat?"
    )


# ── Marathi ───────────────────────────────────────────────────────

def _marathi_prompt(name: str, area: Optional[str], budget: Optional[str]) -> str:
    return f"""You are Purva, a senior property consultant at Purva Real Estate. You are a Maharashtrian woman.

CRITICAL: Respond in Marathi (Roman script). Use feminine Marathi language.

## CLIENT INFORMATION
- Client Name: {name}
- Preferred Location: {area or "Nakki nahi zala"}
- Budget Range: {budget or DEFAULT_BUDGET}

## CONVERSATION GOAL
Schedule a property site visit. Keep responses concise."""


def _marathi_greeting(name: str, area: Optional[str]) -> str:
    interest = f" Tumhi {area} madhye property baghitli." if area else ""
    return (
        f"Namaskar! Mi {name} ji shi bolte ahe ka? "
        f"Mi Purva bolte, Purva Real Estate madhun.{interest} "
        "Tumhala thoda vel ahe ka bolayala?"
    )


SCRIPTS: dict[Language, ScriptTemplates] = {
    Language.HINDI: ScriptTemplates(_hindi_prompt, _hindi_greeting),
    Language.ENGLISH: ScriptTemplates(_english_prompt, _english_greeting),
    Language.MARATHI: ScriptTemplates(_marathi_prompt, _marathi_greeting),
}


def resolve_language(value: str | Language | None) -> Language:
    """Map a language selector onto a supported language, defaulting to Hindi."""
    try:
        return Language(value)
    except ValueError:
        return DEFAULT_LANGUAGE


def build_script(
    language: str | Language | None,
    customer_name: Optional[str] = None,
    preferred_area: Optional[str] = None,
    budget: Optional[str] = None,
) -> CallScript:
    """Render the system prompt and greeting for one lead."""
    resolved = resolve_language(language)
    name = customer_name or DEFAULT_CUSTOMER_NAME
    templates = SCRIPTS[resolved]
    return CallScript(
        language=resolved,
        customer_name=name,
        system_prompt=templates.system_prompt(name, preferred_area, budget),
        greeting=templates.greeting(name, preferred_area),
    )
