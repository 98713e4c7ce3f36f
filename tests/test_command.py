import pytest

from nextbridge.core.command import (
    CommandTemplate,
    default_command,
    parse_command,
    resolve,
)
from nextbridge.core.config import PluginConfig
from nextbridge.core.exceptions import InvalidCommandError, UnknownIntentError


class TestResolve:
    def test_develop_uses_turbo_dev_server_and_keeps_endpoint(self):
        result = resolve("develop", "next@http://localhost:3000")

        assert str(result).startswith("next dev")
        assert "--turbo" in str(result)
        assert str(result).endswith("@http://localhost:3000")
        assert result.argument == "http://localhost:3000"

    def test_serve_uses_production_start(self):
        result = resolve("serve", ["next@http://localhost:3000"])

        assert result.render() == ["next start@http://localhost:3000"]

    def test_develop_and_serve_are_disjoint(self):
        for cmd in ("next@http://localhost:3000", ["next@http://0.0.0.0:8080", "--keepAliveTimeout", "5"]):
            assert resolve("develop", cmd) != resolve("serve", cmd)
            assert str(resolve("develop", cmd)) != str(resolve("serve", cmd))

    def test_resolution_is_deterministic(self):
        assert resolve("develop", "next@http://localhost:3000") == resolve(
            "develop", "next@http://localhost:3000"
        )

    def test_resolving_a_resolved_command_is_stable(self):
        once = resolve("serve", "next@http://localhost:3000")
        twice = resolve("serve", once.render())
        assert once == twice

    def test_resolved_develop_command_can_switch_to_serve(self):
        develop = resolve("develop", "next@http://localhost:3000")
        serve = resolve("serve", develop.render())
        assert serve.render() == ["next start@http://localhost:3000"]

    def test_extra_tokens_are_kept(self):
        result = resolve("serve", ["next@http://localhost:3000", "--keepAliveTimeout", "5"])
        assert result.render() == ["next start@http://localhost:3000", "--keepAliveTimeout", "5"]

    def test_default_command_uses_configured_port(self):
        result = resolve("serve", None, PluginConfig(port=4000))
        assert result.render() == ["next start@http://localhost:4000"]

    def test_default_command_without_config(self):
        assert resolve("develop").argument == "http://localhost:3000"
        assert default_command() == ["next@http://localhost:3000"]

    def test_empty_list_falls_back_to_default(self):
        assert resolve("serve", []).argument == "http://localhost:3000"

    @pytest.mark.parametrize("intent", ["build", "deploy", ""])
    def test_unknown_intent(self, intent):
        with pytest.raises(UnknownIntentError):
            resolve(intent, "next@http://localhost:3000")

    @pytest.mark.parametrize("cmd", ["node server.js", "nextjs@http://localhost:3000", "", ["   "]])
    def test_invalid_command(self, cmd):
        with pytest.raises(InvalidCommandError):
            resolve("serve", cmd)

    def test_custom_next_command_without_marker_is_untouched(self):
        result = resolve("develop", "next dev -p 4000")
        assert str(result) == "next dev -p 4000"


class TestCommandTemplate:
    def test_parse_splits_marker(self):
        template = parse_command("next@http://127.0.0.1:3000")
        assert template == CommandTemplate(start_token="next", argument="http://127.0.0.1:3000")
        assert template.hostname == "127.0.0.1"
        assert template.port == 3000

    def test_argv_drops_marker_argument(self):
        template = resolve("develop", ["next@http://localhost:3000", "--experimental-https"])
        assert template.argv() == ["next", "dev", "--turbo", "--experimental-https"]

    def test_hostname_without_argument(self):
        template = parse_command("next")
        assert template.hostname is None
        assert template.port is None
