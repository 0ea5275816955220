"""Redaction of sensitive keys in audit payloads."""

from app.core.constants import REDACTION_MARKER
from app.shared.utils.redaction import is_sensitive_key, redact


class TestIsSensitiveKey:
    """Keys are matched case-insensitively by substring."""

    def test_exact_and_embedded_fragments(self) -> None:
        assert is_sensitive_key("password")
        assert is_sensitive_key("oldPassword")
        assert is_sensitive_key("X-Api-Key-Secret")
        assert is_sensitive_key("reset_token")
        assert is_sensitive_key("CVV")

    def test_plain_keys_are_not_sensitive(self) -> None:
        assert not is_sensitive_key("name")
        assert not is_sensitive_key("email")
        assert not is_sensitive_key(42)


class TestRedact:
    """Sensitive values are masked at any depth; the input is left untouched."""

    def test_top_level_key_masked(self) -> None:
        out = redact({"email": "a@b.co", "password": "hunter2"})
        assert out == {"email": "a@b.co", "password": REDACTION_MARKER}

    def test_nested_dicts_and_lists_of_objects(self) -> None:
        data = {
            "user": {"profile": {"accessToken": "abc"}},
            "cards": [{"credit_card": "4111", "label": "main"}, {"cvv": "123"}],
        }
        out = redact(data)
        assert out["user"]["profile"]["accessToken"] == REDACTION_MARKER
        assert out["cards"][0] == {"credit_card": REDACTION_MARKER, "label": "main"}
        assert out["cards"][1] == {"cvv": REDACTION_MARKER}

    def test_whole_subtree_under_sensitive_key_is_replaced(self) -> None:
        out = redact({"secret": {"nested": "value"}})
        assert out == {"secret": REDACTION_MARKER}

    def test_input_not_mutated(self) -> None:
        data = {"password": "hunter2", "items": [{"token": "t"}]}
        redact(data)
        assert data == {"password": "hunter2", "items": [{"token": "t"}]}

    def test_scalars_and_none_pass_through(self) -> None:
        assert redact(None) is None
        assert redact("password") == "password"
        assert redact(5) == 5
        assert redact([1, "a", True]) == [1, "a", True]

    def test_tuple_container_kept(self) -> None:
        out = redact(({"ssn": "1"}, 2))
        assert out == ({"ssn": REDACTION_MARKER}, 2)

    def test_no_sensitive_value_reachable(self) -> None:
        data = {"a": [{"b": {"api_key_v2": "leak"}}], "API_KEY": "leak", "Secret_Sauce": "leak"}
        assert "leak" not in repr(redact(data))
