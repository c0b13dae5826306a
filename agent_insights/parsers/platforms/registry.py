"""Log parser registry for platform-specific implementations."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from agent_insights import config
from agent_insights.models import AgentKind, FileMetadata, NormalizedRecord
from agent_insights.parsers.platforms.claude_code import parser as claude_code_parser
from agent_insights.parsers.platforms.codex import parser as codex_parser
from agent_insights.parsers.platforms.gemini import parser as gemini_parser


def _claude_file_eligible(path: Path) -> bool:
    # agent-*.jsonl files are sidechain transcripts owned by a parent session.
    return not path.name.startswith("agent")


def _codex_file_eligible(path: Path) -> bool:
    return True


def _gemini_file_eligible(path: Path) -> bool:
    return "chats" in path.parts[:-1]


@dataclass(frozen=True)
class PlatformSpec:
    kind: AgentKind
    extension: str
    parse: Callable[[FileMetadata], NormalizedRecord]
    is_eligible: Callable[[Path], bool]


PLATFORMS: dict[AgentKind, PlatformSpec] = {
    AgentKind.CLAUDE: PlatformSpec(
        kind=AgentKind.CLAUDE,
        extension="jsonl",
        parse=claude_code_parser.parse_session_file,
        is_eligible=_claude_file_eligible,
    ),
    AgentKind.CODEX: PlatformSpec(
        kind=AgentKind.CODEX,
        extension="jsonl",
        parse=codex_parser.parse_session_file,
        is_eligible=_codex_file_eligible,
    ),
    AgentKind.GEMINI: PlatformSpec(
        kind=AgentKind.GEMINI,
        extension="json",
        parse=gemini_parser.parse_chat_file,
        is_eligible=_gemini_file_eligible,
    ),
}


def default_roots() -> dict[AgentKind, Path]:
    """Configured log root for every supported agent."""
    return {
        AgentKind.CLAUDE: config.CLAUDE_ROOT,
        AgentKind.CODEX: config.CODEX_ROOT,
        AgentKind.GEMINI: config.GEMINI_ROOT,
    }


def get_platform(kind: AgentKind) -> PlatformSpec:
    try:
        return PLATFORMS[kind]
    except KeyError:
        raise ValueError(f"No log parser registered for agent {kind.value!r}") from None


def parse_log_file(kind: AgentKind, file: FileMetadata) -> NormalizedRecord:
    """Parse a log file by delegating to the matching platform parser."""
    return get_platform(kind).parse(file)
