"""Keyboard shortcuts on the root prompt."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from prompt_toolkit.keys import Keys

from parley import globals as parley_globals
from parley.globals import build_key_bindings


def _binding(bindings, key):
    (binding,) = bindings.get_bindings_for_keys((key,))
    return binding


def _event(text: str):
    event = MagicMock()
    event.app.current_buffer.text = text
    return event


def test_escape_only_active_while_panel_open():
    panel = {"open": False}
    escape = _binding(build_key_bindings(lambda: panel["open"]), Keys.Escape)

    assert not escape.filter()
    panel["open"] = True
    assert escape.filter()


def test_shortcuts_are_always_active():
    bindings = build_key_bindings(lambda: False)

    assert _binding(bindings, Keys.ControlK).filter()
    assert _binding(bindings, Keys.ControlUnderscore).filter()


@pytest.mark.asyncio
async def test_typed_text_survives_a_shortcut():
    bindings = build_key_bindings(lambda: True)
    event = _event("half a thought")

    _binding(bindings, Keys.Escape).handler(event)

    event.app.exit.assert_called_once_with(result="!panel close")
    fake_session = MagicMock()
    fake_session.prompt_async = AsyncMock(return_value="")
    with patch.object(parley_globals, "_root_session", fake_session):
        await parley_globals.root_prompt(key_bindings=bindings)
        await parley_globals.root_prompt(key_bindings=bindings)

    first, second = fake_session.prompt_async.call_args_list
    assert first.kwargs["default"] == "half a thought"
    assert second.kwargs["default"] == ""
