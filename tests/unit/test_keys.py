"""Test key construction and item conversion."""

from decimal import Decimal

from genai_chat.storage import keys
from genai_chat.storage.items import from_item, to_item


def test_prefixed_keys() -> None:
    assert keys.user_key("alice") == "user#alice"
    assert keys.chat_key("c1") == "chat#c1"
    assert keys.system_context_key("alice") == "systemContext#alice"
    assert keys.share_key("s1") == "share#s1"
    assert keys.share_owner_key("alice", "c1") == "user#alice_chat#c1"


def test_strip_user_prefix_keeps_hashes_in_saml_ids() -> None:
    value = "user#EntraID_example.com#EXT#@example.onmicrosoft.com"

    assert keys.strip_user_prefix(value) == "EntraID_example.com#EXT#@example.onmicrosoft.com"
    assert keys.strip_user_prefix("user#alice") == "alice"


def test_strip_chat_prefix() -> None:
    assert keys.strip_chat_prefix("chat#c1") == "c1"


def test_usage_date_from_message_sort_key() -> None:
    # 2023-11-14T22:13:20Z
    assert keys.usage_date("1700000000000#0") == "2023-11-14"
    assert keys.usage_date("1700000000000") == "2023-11-14"


def test_new_ids_are_unique() -> None:
    assert keys.new_id() != keys.new_id()


def test_to_item_drops_none_and_converts_floats() -> None:
    item = to_item({"a": 1, "b": None, "c": {"score": 0.5, "tags": [1.25]}})

    assert "b" not in item
    assert item["a"] == 1
    assert item["c"]["score"] == Decimal("0.5")
    assert item["c"]["tags"] == [Decimal("1.25")]


def test_from_item_restores_numbers() -> None:
    value = from_item({"n": Decimal("3"), "f": Decimal("0.5"), "l": [Decimal("2")], "s": "x"})

    assert value == {"n": 3, "f": 0.5, "l": [2], "s": "x"}
    assert isinstance(value["n"], int)
