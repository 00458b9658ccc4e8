"""Command and environment building tests."""

from __future__ import annotations

from cli_agent_provider.shared.invokers.command import build_command, build_env
from cli_agent_provider.shared.invokers.validation import ProviderSettings


class TestBuildCommand:
    """Test argument construction."""

    def test_minimal(self):
        cmd = build_command(ProviderSettings())
        assert cmd == [
            "claude", "-p", "--output-format", "stream-json", "--verbose", "--model", "opus",
        ]

    def test_prompt_never_in_argv(self):
        cmd = build_command(ProviderSettings(cli_path="/opt/bin/claude"))
        assert cmd[0] == "/opt/bin/claude"
        assert "--prompt" not in cmd

    def test_resume(self):
        cmd = build_command(ProviderSettings(), session_id="sess-9")
        idx = cmd.index("--resume")
        assert cmd[idx + 1] == "sess-9"

    def test_full_options_order(self):
        settings = ProviderSettings(
            model="sonnet",
            custom_system_prompt="You are terse.",
            max_turns=5,
            permission_mode="acceptEdits",
            skip_permissions=True,
            allowed_tools=["Read", "Grep"],
        )
        cmd = build_command(settings, session_id="s")
        assert cmd[5:] == [
            "--model", "sonnet",
            "--resume", "s",
            "--system-prompt", "You are terse.",
            "--max-turns", "5",
            "--permission-mode", "acceptEdits",
            "--dangerously-skip-permissions",
            "--allowedTools", "Read,Grep",
        ]

    def test_append_system_prompt(self):
        cmd = build_command(ProviderSettings(append_system_prompt="Be brief."))
        assert cmd[-2:] == ["--append-system-prompt", "Be brief."]
        assert "--system-prompt" not in cmd

    def test_allowed_wins_over_disallowed(self):
        cmd = build_command(ProviderSettings(allowed_tools=["Read"], disallowed_tools=["Bash"]))
        assert "--allowedTools" in cmd
        assert "--disallowedTools" not in cmd

    def test_disallowed_only(self):
        cmd = build_command(ProviderSettings(disallowed_tools=["Bash", "Write"]))
        assert cmd[-2:] == ["--disallowedTools", "Bash,Write"]


class TestBuildEnv:
    """Test subprocess environment."""

    def test_inherit_when_nothing_added(self):
        assert build_env(ProviderSettings()) is None

    def test_extra_env_merged(self):
        env = build_env(ProviderSettings(env={"FOO": "bar"}), base={"PATH": "/bin"})
        assert env == {"PATH": "/bin", "FOO": "bar"}

    def test_thinking_tokens(self):
        env = build_env(ProviderSettings(max_thinking_tokens=2048), base={})
        assert env == {"MAX_THINKING_TOKENS": "2048"}
