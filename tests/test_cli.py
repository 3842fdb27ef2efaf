import logging

import pytest

from compliance_copilot.backends.credential_check import CredentialCheck
from compliance_copilot.cli import KeyState, _handle_command, _handle_line, build_parser, setup_logging
from compliance_copilot.domain.messages import ThreadKind
from compliance_copilot.orchestration.contracts import ImplementationGuide, ImplementationStep
from compliance_copilot.presentation.render import render_guide, render_message, render_transcript
from tests.fakes.fake_gateway import grounded, imagined

GUIDE = ImplementationGuide(
    gcp=[
        ImplementationStep(
            title="Use CMEK",
            instruction="gcloud kms keyrings create ring --location global",
            reference_url="https://cloud.google.com/kms/docs",
        )
    ]
)


def test_parser_chat_options():
    args = build_parser().parse_args(
        ["chat", "--doc", "a.txt", "--doc", "b.md", "--scope", "a.txt", "--model", "gemini-2.5-pro", "-v"]
    )
    assert args.command == "chat"
    assert args.doc == ["a.txt", "b.md"]
    assert args.scope == "a.txt"
    assert args.model == "gemini-2.5-pro"
    assert args.verbose is True


def test_parser_requires_command():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


class TestRender:
    @pytest.mark.asyncio
    async def test_answer_hints(self, engine, gateway):
        gateway.queue(grounded(implementation=GUIDE, documentation_url="https://cloud.google.com/kms/docs"))
        msg = await engine.submit_primary("Is encryption required?")

        text = render_message(msg)

        assert text.startswith(f"[{msg.id}] copilot")
        assert "docs: https://cloud.google.com/kms/docs" in text
        assert f":guide {msg.id}" in text and "(GCP)" in text

    @pytest.mark.asyncio
    async def test_escalation_hint(self, engine, gateway):
        gateway.queue(grounded("Not in the documents.", found=False, escalation_message="Try imagination?"))
        msg = await engine.submit_primary("What about SOC 2?")
        assert "Try imagination?  (type :imagine)" in render_message(msg)

    def test_guide_lists_every_provider(self):
        text = render_guide(GUIDE)
        assert "Step 1: Use CMEK" in text
        assert "    Reference: https://cloud.google.com/kms/docs" in text
        assert text.count("No implementation steps provided for this cloud.") == 2
        assert "Open GCP Console: https://console.cloud.google.com/" in text
        assert "Open AWS Console: https://console.aws.amazon.com/" in text
        assert "Open Azure Console: https://portal.azure.com/" in text

    def test_missing_guide(self):
        assert "No implementation steps" in render_guide(None)

    def test_empty_transcript(self):
        assert "(no messages yet)" in render_transcript([], title="Conversation")


class TestHandleCommand:
    @pytest.mark.asyncio
    async def test_quit(self, engine):
        assert await _handle_command(engine, ":quit", KeyState()) is False

    @pytest.mark.asyncio
    async def test_scope_rejects_unknown_document(self, engine, capsys):
        await _handle_command(engine, ":scope missing.txt", KeyState(valid=True))
        assert engine.session.get_scope() == "all"

        await _handle_command(engine, ":scope gdpr.txt", KeyState(valid=True))
        assert engine.session.get_scope() == "gdpr.txt"
        assert "Scope: gdpr.txt" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_imagine_defaults_to_unanswered_question(self, engine, gateway, capsys):
        gateway.queue(grounded("Not found.", found=False), imagined("SOC 2 covers five trust criteria."))
        await engine.submit_primary("What does SOC 2 cover?")

        await _handle_command(engine, ":imagine", KeyState(valid=True))

        assert engine.imagination_topic == "What does SOC 2 cover?"
        assert gateway.calls[-1].payload.question == "What does SOC 2 cover?"
        assert "SOC 2 covers five trust criteria." in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_imagine_without_offer(self, engine, gateway, capsys):
        await _handle_command(engine, ":imagine", KeyState(valid=True))
        assert gateway.calls == []
        assert "Nothing to escalate" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_edit_replays_question(self, engine, gateway):
        gateway.queue(grounded("first"), grounded("second"))
        await engine.submit_primary("Is encryption required?")

        await _handle_command(engine, ":edit 1 Is MFA required?", KeyState(valid=True))

        contents = [m.content for m in engine.messages(ThreadKind.PRIMARY)]
        assert contents[-2:] == ["Is MFA required?", "second"]

    @pytest.mark.asyncio
    async def test_add_and_remove_document(self, engine, tmp_path):
        path = tmp_path / "soc2.md"
        path.write_text("CC6.1 logical access.", encoding="utf-8")

        await _handle_command(engine, f":add {path}", KeyState(valid=True))
        assert "soc2.md" in engine.documents

        await _handle_command(engine, ":rm soc2.md", KeyState(valid=True))
        assert "soc2.md" not in engine.documents


def _fake_validator(accepted):
    calls = []

    async def validate(credential, **kwargs):
        calls.append(credential)
        if credential in accepted:
            return CredentialCheck(valid=True)
        return CredentialCheck(valid=False, error="API key not valid. Please pass a valid API key.")

    validate.calls = calls
    return validate


class TestApiKey:
    @pytest.mark.asyncio
    async def test_questions_are_not_sent_without_valid_key(self, engine, gateway, capsys):
        key = KeyState(valid=False, error="API key not valid.")

        assert await _handle_line(engine, "Is encryption required?", key) is True
        await _handle_command(engine, ":imagine Is MFA required?", key)
        await _handle_command(engine, ":ask anything else?", key)

        assert gateway.calls == []
        assert engine.messages(ThreadKind.PRIMARY) == ()
        assert engine.imagination_topic is None
        out = capsys.readouterr().out
        assert "A valid API key is required" in out
        assert "API key not valid." in out

    @pytest.mark.asyncio
    async def test_key_replacement_unlocks_questions(self, engine, gateway, monkeypatch):
        validator = _fake_validator({"new-good-key"})
        monkeypatch.setattr("compliance_copilot.cli.validate_credential", validator)
        key = KeyState(valid=False)
        gateway.queue(grounded("Yes."))

        await _handle_command(engine, ":key new-good-key", key)
        await _handle_line(engine, "Is encryption required?", key)

        assert key.valid is True
        assert validator.calls == ["new-good-key"]
        assert engine.session.get_credential() == "new-good-key"
        assert gateway.calls[0].session.credential == "new-good-key"
        assert engine.messages(ThreadKind.PRIMARY)[-1].content == "Yes."

    @pytest.mark.asyncio
    async def test_rejected_key_keeps_previous_one(self, engine, monkeypatch, capsys):
        monkeypatch.setattr("compliance_copilot.cli.validate_credential", _fake_validator(set()))
        previous = engine.session.get_credential()
        key = KeyState(valid=True)

        await _handle_command(engine, ":key bad-key", key)

        assert key.valid is True
        assert engine.session.get_credential() == previous
        assert "API key rejected" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_new_key_is_not_logged(self, engine, monkeypatch, caplog):
        monkeypatch.setattr("compliance_copilot.cli.validate_credential", _fake_validator({"s3cret-key"}))
        caplog.set_level("DEBUG")

        await _handle_command(engine, ":key s3cret-key", KeyState())

        assert "s3cret-key" not in caplog.text


@pytest.mark.asyncio
async def test_model_command_changes_later_calls(engine, gateway, capsys):
    gateway.queue(grounded())

    await _handle_command(engine, ":model gemini-2.5-pro", KeyState(valid=True))
    await _handle_line(engine, "Is encryption required?", KeyState(valid=True))

    assert engine.session.get_model() == "gemini-2.5-pro"
    assert gateway.calls[0].session.model == "gemini-2.5-pro"
    assert "Model: gemini-2.5-pro" in capsys.readouterr().out


def test_setup_logging_writes_to_configured_file(tmp_path):
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    logfile = tmp_path / "nested" / "copilot.log"
    try:
        setup_logging({"logging": {"level": "INFO", "file": str(logfile)}})
        logging.getLogger("compliance_copilot.cli").info("hello from the cli")
        logging.getLogger("compliance_copilot.cli").debug("too detailed")
        for handler in root.handlers:
            handler.flush()
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)

    text = logfile.read_text(encoding="utf-8")
    assert "hello from the cli" in text
    assert "too detailed" not in text
