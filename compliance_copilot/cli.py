# compliance_copilot/cli.py

import os
import sys
import asyncio
import logging
import argparse
from dataclasses import dataclass
from typing import Dict, Any, List, Optional

from dotenv import load_dotenv

from compliance_copilot.backends.credential_check import validate_credential
from compliance_copilot.backends.model_gateway import ModelGateway
from compliance_copilot.boot.env_vars import EnvConfig
from compliance_copilot.boot.load_settings import AppConfigLoader
from compliance_copilot.domain.documents import SCOPE_ALL, DocumentStore
from compliance_copilot.domain.messages import Message, ThreadKind
from compliance_copilot.domain.session import DEFAULT_MODEL, SessionContext
from compliance_copilot.errors import CopilotError
from compliance_copilot.ingest.loaders import load_text_document
from compliance_copilot.orchestration.conversation import ConversationEngine
from compliance_copilot.presentation.render import box, render_guide, render_message, render_transcript, rule

HELP_TEXT = """\
Plain text            ask a question about your document(s)
:imagine [question]   answer from general knowledge (defaults to the last unanswered question)
:ask <question>       follow-up inside the open imagination thread
:edit <id> <text>     rewrite one of your questions and replay it (add 'i' for imagination: :edit i 3 ...)
:guide <id>           show the implementation guide of an answer
:scope <name|all>     choose which document(s) to use as context
:docs                 list loaded documents
:add <path>           load another text document
:rm <name>            remove a document
:key <api-key>        validate and switch to another Gemini API key
:model [name]         show or change the Gemini model
:history [i]          show the primary (or imagination) thread
:quit                 leave
"""

# Commands that send a question to the model
ASKING_COMMANDS = {"imagine", "ask", "edit"}


@dataclass
class KeyState:
    """Outcome of the last API key validation; questions are only sent while valid."""
    valid: bool = False
    error: Optional[str] = None


# ──────────────────────────────────────────────────────────────────────────────
# UI helpers
# ──────────────────────────────────────────────────────────────────────────────

def _print_welcome(store: DocumentStore, key: KeyState) -> None:
    print(box("Compliance Copilot"))
    print("Type ':help' for commands, ':quit' to exit.")
    if len(store):
        print(f"Documents loaded: {', '.join(store.names())}\n")
    else:
        print("No documents loaded yet. Use ':add <path>' before asking questions.\n")
    if not key.valid:
        _print_key_required(key)


def _print_key_required(key: KeyState) -> None:
    print(box("A valid API key is required"))
    if key.error:
        print(f"Reason: {key.error}")
    print("Set one with ':key <api-key>' before asking questions.")


def _print_reply(msg: Message, header: str = " response ") -> None:
    print(rule(header))
    print(render_message(msg))
    print(rule())


# ──────────────────────────────────────────────────────────────────────────────
# Logging
# ──────────────────────────────────────────────────────────────────────────────

def setup_logging(runtime_cfg: Dict[str, Any], *, verbose: bool = False, debug: bool = False) -> None:
    """
    Configure the root logger: file handler from settings, console only with -v/--debug.
    """
    log_cfg = runtime_cfg.get("logging", {})
    logfile = log_cfg.get("file", "logs/app.log")

    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = getattr(logging, str(log_cfg.get("level", "WARNING")).upper(), logging.WARNING)

    handlers: List[logging.Handler] = []
    if verbose or debug:
        handlers.append(logging.StreamHandler())
    if logfile:
        os.makedirs(os.path.dirname(logfile) or ".", exist_ok=True)
        handlers.append(logging.FileHandler(logfile, encoding="utf-8"))

    logging.basicConfig(
        level=level,
        format=log_cfg.get("format", "%(asctime)s | %(levelname)s | %(name)s | %(message)s"),
        handlers=handlers or [logging.NullHandler()],
        force=True,
    )


# ──────────────────────────────────────────────────────────────────────────────
# Commands
# ──────────────────────────────────────────────────────────────────────────────

def cmd_check_key() -> int:
    """
    Validate the configured Gemini API key.

    Returns:
        0 when the key is accepted, 1 otherwise.
    """
    result = asyncio.run(validate_credential(EnvConfig().google_api_key))
    if result.valid:
        print(box("API key is valid"))
        return 0
    print(box("API key check failed"))
    print(f"Reason: {result.error}")
    return 1


async def _check_key(credential: Optional[str]) -> KeyState:
    result = await validate_credential(credential)
    return KeyState(valid=result.valid, error=result.error)


def _load_documents(store: DocumentStore, paths: List[str]) -> None:
    for path in paths:
        try:
            name, content = load_text_document(path)
            store.add(name, content)
            print(f"• loaded {name}")
        except (CopilotError, OSError) as exc:
            logging.error("Failed to load %s: %s", path, exc)
            print(box(f"Skipped: {path}"))
            print(f"Reason: {exc}")


async def _replace_key(engine: ConversationEngine, key: KeyState, new_key: str) -> None:
    if not new_key:
        print("Usage: :key <api-key>")
        return
    checked = await _check_key(new_key)
    if not checked.valid:
        # The previous key (and its validity) stays in place
        print(box("API key rejected"))
        print(f"Reason: {checked.error}")
        return
    engine.session.set_credential(new_key)
    key.valid, key.error = True, None
    print("API key accepted.")


async def _handle_command(engine: ConversationEngine, line: str, key: KeyState) -> Optional[bool]:
    """
    Run one ':' command. Returns False to leave the session.
    """
    cmd, _, rest = line[1:].partition(" ")
    cmd, rest = cmd.lower(), rest.strip()

    if cmd in {"quit", "exit", "q"}:
        return False

    if cmd in ASKING_COMMANDS and not key.valid:
        _print_key_required(key)
        return True

    if cmd == "help":
        print(HELP_TEXT)
    elif cmd == "key":
        await _replace_key(engine, key, rest)
    elif cmd == "model":
        if rest:
            engine.session.set_model(rest)
        print(f"Model: {engine.session.get_model()}")
    elif cmd == "docs":
        names = engine.documents.names()
        print("\n".join(f"• {n}" for n in names) if names else "(no documents)")
        print(f"Scope: {engine.session.get_scope()}")
    elif cmd == "add":
        _load_documents(engine.documents, [rest])
    elif cmd == "rm":
        if not engine.documents.remove(rest):
            print(f"No document named {rest!r}.")
    elif cmd == "scope":
        scope = rest or SCOPE_ALL
        if scope != SCOPE_ALL and scope not in engine.documents:
            print(f"No document named {scope!r}; keeping scope {engine.session.get_scope()!r}.")
        else:
            engine.session.set_scope(scope)
            print(f"Scope: {scope}")
    elif cmd == "history":
        kind = ThreadKind.IMAGINATION if rest.startswith("i") else ThreadKind.PRIMARY
        title = f"Imagination: {engine.imagination_topic}" if kind is ThreadKind.IMAGINATION else "Conversation"
        print(render_transcript(engine.messages(kind), title=title))
    elif cmd == "guide":
        msg = _find(engine, ThreadKind.PRIMARY, rest)
        if msg is not None:
            print(render_guide(msg.implementation))
    elif cmd == "imagine":
        question = rest
        if not question:
            offer = engine.latest_escalation_offer()
            if offer is None:
                print("Nothing to escalate; use ':imagine <question>'.")
                return True
            question = offer.originating_question or ""
        _print_reply(await engine.escalate(question), " imagination ")
    elif cmd == "ask":
        _print_reply(await engine.submit_imagination_followup(rest), " imagination ")
    elif cmd == "edit":
        kind = ThreadKind.PRIMARY
        if rest.startswith("i "):
            kind, rest = ThreadKind.IMAGINATION, rest[2:].strip()
        mid, _, text = rest.partition(" ")
        if not mid.isdigit():
            print("Usage: :edit [i] <id> <new text>")
            return True
        _print_reply(await engine.edit_and_resubmit(kind, int(mid), text))
    else:
        print(f"Unknown command ':{cmd}'. Type ':help'.")
    return True


async def _handle_line(engine: ConversationEngine, line: str, key: KeyState) -> bool:
    """
    Route one input line to a command or the primary thread. Returns False to leave.
    """
    if line.startswith(":"):
        return await _handle_command(engine, line, key) is not False
    if not key.valid:
        _print_key_required(key)
        return True
    _print_reply(await engine.submit_primary(line))
    return True


def _find(engine: ConversationEngine, kind: ThreadKind, raw_id: str) -> Optional[Message]:
    if not raw_id.isdigit():
        print("A numeric message id is required.")
        return None
    for msg in engine.messages(kind):
        if msg.id == int(raw_id):
            return msg
    print(f"No message {raw_id}.")
    return None


async def _chat_session(cfg: Dict[str, Any], doc_paths: List[str]) -> int:
    agent_cfg = cfg.get("agent", {})
    session_cfg = cfg.get("session", {})

    store = DocumentStore()
    _load_documents(store, doc_paths)

    session = SessionContext(
        credential=EnvConfig().google_api_key,
        model=agent_cfg.get("llm_model", DEFAULT_MODEL),
        scope=session_cfg.get("default_scope", SCOPE_ALL),
    )
    engine = ConversationEngine(store, session, ModelGateway(agent_config=agent_cfg))
    key = await _check_key(session.get_credential())

    _print_welcome(store, key)
    while True:
        try:
            print(rule(" ask "))
            line = (await asyncio.to_thread(input, " - ")).strip()
            print(rule())
        except (EOFError, KeyboardInterrupt):
            print()
            break

        if not line:
            continue
        if line.lower() in {"exit", "quit"}:
            break

        try:
            if not await _handle_line(engine, line, key):
                break
        except (CopilotError, ValueError) as exc:
            logging.warning("Command rejected: %s", exc)
            print(box("Not possible right now"))
            print(f"Reason: {exc}")

    return 0


# ──────────────────────────────────────────────────────────────────────────────
# CLI
# ──────────────────────────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    """
    Build and return the CLI argument parser.
    """
    parser = argparse.ArgumentParser(description="Compliance Copilot (CLI)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # check-key
    p_check = subparsers.add_parser(
        "check-key", help="Verify that the configured Gemini API key is accepted"
    )
    p_check.add_argument("-v", "--verbose", action="store_true", help="Verbose logs to console")
    p_check.add_argument("--debug", action="store_true", help="Debug logs (most detailed)")

    # chat
    p_chat = subparsers.add_parser(
        "chat", help="Interactive question answering over your compliance documents"
    )
    p_chat.add_argument("--doc", action="append", default=[], metavar="PATH", help="Text document to load (repeatable)")
    p_chat.add_argument("--scope", default=None, help="Document name to use as context, or 'all' (overrides settings file)")
    p_chat.add_argument("--model", default=None, help="Gemini model name (overrides settings file)")
    p_chat.add_argument("--timeout", type=float, default=None, help="Model request timeout in seconds")
    p_chat.add_argument("-v", "--verbose", action="store_true", help="Verbose logs to console")
    p_chat.add_argument("--debug", action="store_true", help="Debug logs (most detailed)")

    return parser


def main() -> None:
    """
    Main entry point for the Compliance Copilot CLI.
    """
    parser = build_parser()
    args = parser.parse_args()

    # Load .env (best-effort)
    loaded = load_dotenv()

    # Merge config
    settings_loader = AppConfigLoader()
    cfg = settings_loader.merge_with_args(args)

    # Logging
    setup_logging(cfg, verbose=args.verbose, debug=args.debug)
    if loaded:
        logging.info("Environment variables loaded from .env")

    if args.command == "check-key":
        sys.exit(cmd_check_key())

    if args.command == "chat":
        sys.exit(asyncio.run(_chat_session(cfg, args.doc)))

    parser.print_help()
    sys.exit(2)


if __name__ == "__main__":
    main()
