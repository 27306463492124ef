"""Questionary / prompt_toolkit theme for ucaccess prompts."""

from __future__ import annotations

from prompt_toolkit.styles import Style

QUESTIONARY_STYLE_SELECT = Style.from_dict(
    {
        "question": "bold ansicyan",
        "answer": "bold ansigreen",
        "pointer": "bold ansigreen",
        "highlighted": "bold ansigreen",
        "checkbox-selected": "bold ansigreen",
        "instruction": "ansibrightblack",
        "disabled": "ansibrightblack",
    }
)

QUESTIONARY_STYLE_CONFIRM = Style.from_dict(
    {
        "question": "bold ansiyellow",
        "answer": "bold ansiyellow",
        "instruction": "ansibrightblack",
    }
)
