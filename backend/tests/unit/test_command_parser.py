"""Unit tests for the terminal command tokenizer."""
from cybersiege.services.command_parser import parse_command


class TestParseCommand:

    def test_verb_positional_and_flags(self):
        parsed = parse_command("scan server --target 10.0.0.5 --type port")
        assert parsed.verb == "scan"
        assert parsed.args == ["server"]
        assert parsed.flags == {"target": "10.0.0.5", "type": "port"}

    def test_verb_is_lowercased(self):
        assert parse_command("SCAN network --type basic").verb == "scan"

    def test_later_duplicate_flag_wins(self):
        parsed = parse_command("scan network --type basic --type full")
        assert parsed.flag("type") == "full"

    def test_flag_without_value_is_dropped(self):
        assert parse_command("scan network --type").flags == {}
        parsed = parse_command("scan --stealth --type port")
        assert parsed.flags == {"type": "port"}

    def test_single_dash_tokens_stay_positional(self):
        parsed = parse_command("uname -a")
        assert parsed.args == ["-a"]
        assert parsed.has_token("-a")

    def test_blank_input(self):
        parsed = parse_command("   ")
        assert parsed.verb == ""
        assert parsed.args == []

    def test_missing_arguments_are_none(self):
        parsed = parse_command("cat")
        assert parsed.arg(0) is None
        assert parsed.flag("type") is None
