"""
Tests for the pure services: naming, deck, identity.
"""

import random
import re

import pytest

from services.deck_service import (
    ANSWER_CARDS,
    PROMPT_CARDS,
    build_share_text,
    fill_blank,
    pick_options,
    pick_prompt,
)
from services.identity_service import (
    HOST_ID_KEY,
    PLAYER_ID_KEY,
    AnonymousSessionProvider,
    DeviceIdentity,
    load_device_identity,
)
from services.naming_service import generate_room_code, normalize_room_code, safe_name


class TestNaming:
    """Room codes and display names."""

    def test_room_codes_are_four_digits(self):
        rng = random.Random(7)
        for _ in range(200):
            code = generate_room_code(rng)
            assert re.fullmatch(r"[1-9]\d{3}", code)

    @pytest.mark.parametrize("raw,expected", [
        ("4821", "4821"),
        (" 48-21 ", "4821"),
        ("482199", "4821"),
        ("ab", ""),
        (None, ""),
    ])
    def test_normalize_room_code(self, raw, expected):
        assert normalize_room_code(raw) == expected

    @pytest.mark.parametrize("raw,expected", [
        ("  Big   Tuna ", "Big Tuna"),
        (None, ""),
        ("x" * 30, "x" * 20),
    ])
    def test_safe_name(self, raw, expected):
        assert safe_name(raw) == expected


class TestDeck:
    """Prompt / option draws and text helpers."""

    def test_pick_prompt_from_deck(self):
        assert pick_prompt(random.Random(1)) in PROMPT_CARDS

    def test_options_are_distinct(self):
        rng = random.Random(3)
        for _ in range(50):
            options = pick_options(rng)
            assert len(options) == 3
            assert len(set(options)) == 3
            assert set(options) <= set(ANSWER_CARDS)

    def test_small_pool(self):
        assert sorted(pick_options(random.Random(1), ["a", "b"], 3)) == ["a", "b"]

    def test_pool_with_duplicates(self):
        assert sorted(pick_options(random.Random(1), ["a", "a", "b"], 3)) == ["a", "b"]

    def test_fill_blank(self):
        assert fill_blank("I love ___ and ___.", "cake") == "I love cake and ___."
        assert fill_blank("What ends civilization?", "a goose") == "What ends civilization? a goose"

    def test_share_text(self):
        text = build_share_text(2, "4821", "I love ___.", ["cake", "naps"])

        assert text == (
            "ROUND 2  ROOM 4821\n"
            "No essays. No mercy. One shot.\n\n"
            "I love ___.\n\n"
            "Reply with 1, 2, 3 or drop your own.\n\n"
            "1) I love cake.\n"
            "2) I love naps."
        )


class TestDeviceIdentity:
    """Durable per-device ids."""

    def test_same_id_every_time(self, tmp_path):
        identity = DeviceIdentity(tmp_path)
        first = identity.get_or_create(PLAYER_ID_KEY)

        assert identity.get_or_create(PLAYER_ID_KEY) == first
        assert DeviceIdentity(tmp_path).get_or_create(PLAYER_ID_KEY) == first

    def test_id_format(self, tmp_path):
        assert re.fullmatch(r"\d+_[0-9a-f]{12}", DeviceIdentity(tmp_path).player_id)

    def test_roles_have_separate_ids(self, tmp_path):
        identity = DeviceIdentity(tmp_path)
        assert identity.player_id != identity.host_id
        assert identity.get_or_create(HOST_ID_KEY) == identity.host_id

    def test_unreadable_file_is_replaced(self, tmp_path):
        (tmp_path / DeviceIdentity.FILENAME).write_text("{not json", encoding="utf-8")

        identity = DeviceIdentity(tmp_path)
        player_id = identity.player_id

        assert player_id
        assert identity.player_id == player_id

    def test_load_from_settings(self, settings):
        identity = load_device_identity(settings)
        player_id = identity.player_id

        assert identity.path.exists()
        assert load_device_identity(settings).player_id == player_id


class TestAnonymousSession:
    """Idempotent anonymous sign-in."""

    def test_callback_fires_once(self):
        provider = AnonymousSessionProvider()
        tokens = []
        provider.on_session(tokens.append)

        provider.ensure_anonymous_session()
        provider.ensure_anonymous_session()

        assert tokens == [provider.token]

    def test_late_callback_fires_immediately(self):
        provider = AnonymousSessionProvider()
        provider.ensure_anonymous_session()
        tokens = []

        provider.on_session(tokens.append)

        assert tokens == [provider.token]

    def test_removed_callback_not_called(self):
        provider = AnonymousSessionProvider()
        tokens = []
        remove = provider.on_session(tokens.append)
        remove()

        provider.ensure_anonymous_session()

        assert tokens == []
        assert provider.token is not None
