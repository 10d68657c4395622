# ============================================================================
# disclosure/base/config.py
# Application Configuration Management
# ============================================================================
#
# PURPOSE:
# Process-wide defaults for the disclosure service: byte ceilings for each
# transcript direction, parser bounds, the default disclosure policy and
# logging. Per-session parameters (server URI, verifier address, extra
# headers) arrive with each session request; see disclosure/contracts/models.py.
#
# KEY CONCEPTS:
# 1. Frozen dataclasses: settings cannot change after creation
# 2. Environment variables: DISCLOSURE_* overrides (e.g., DISCLOSURE_MAX_RECV_DATA=65536)
# 3. One shared config object, replaceable in tests via set_config()
#
# ============================================================================

from __future__ import annotations

import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

logger = logging.getLogger(__name__)


# ============================================================================
# Transcript Limits
# ============================================================================
# The same ceilings are negotiated with the verifier and bound parser input,
# so worst-case parse time is proportional to them.

@dataclass(frozen=True)
class LimitsConfig:
    max_sent_data: int = 4096
    max_recv_data: int = 16384


@dataclass(frozen=True)
class ParserConfig:
    # JSON nesting bound for response bodies
    max_json_depth: int = 64


# ============================================================================
# Default Disclosure Policy
# ============================================================================

DEFAULT_RESPONSE_REVEAL: Tuple[str, ...] = (
    "state",
    "comment",
    "currency",
    "amount",
    "recipient.account",
    "recipient.username",
    "recipient.code",
    "beneficiary.account",
)

DEFAULT_REQUEST_HIDE: Tuple[str, ...] = ("host",)


@dataclass(frozen=True)
class PolicyConfig:
    # Response fields revealed to the verifier; everything else stays hidden
    response_reveal: Tuple[str, ...] = DEFAULT_RESPONSE_REVEAL
    # Request fields kept hidden; the rest of the request is revealed
    request_hide: Tuple[str, ...] = DEFAULT_REQUEST_HIDE
    # Sessions whose response carries another status are aborted
    expected_status: int = 200


@dataclass(frozen=True)
class LogConfig:
    level: str = "INFO"
    format: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    file_enabled: bool = False
    file_name: str = "disclosure.log"
    max_file_size_mb: int = 10
    backup_count: int = 5


@dataclass
class DisclosureConfig:
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    parser: ParserConfig = field(default_factory=ParserConfig)
    policy: PolicyConfig = field(default_factory=PolicyConfig)
    log: LogConfig = field(default_factory=LogConfig)
    verifier_address: str = "127.0.0.1:8079"
    data_dir: Path = field(default_factory=lambda: Path.home() / ".disclosure")
    # Seconds a single session may take, from connect to committed disclosure
    session_timeout: float = 300.0
    debug: bool = False

    @classmethod
    def from_env(cls) -> "DisclosureConfig":
        limits = LimitsConfig(
            max_sent_data=int(os.getenv("DISCLOSURE_MAX_SENT_DATA", "4096")),
            max_recv_data=int(os.getenv("DISCLOSURE_MAX_RECV_DATA", "16384")),
        )

        parser = ParserConfig(
            max_json_depth=int(os.getenv("DISCLOSURE_MAX_JSON_DEPTH", "64")),
        )

        reveal_str = os.getenv("DISCLOSURE_RESPONSE_REVEAL", "")
        hide_str = os.getenv("DISCLOSURE_REQUEST_HIDE", "")
        policy = PolicyConfig(
            response_reveal=_split_list(reveal_str) if reveal_str else DEFAULT_RESPONSE_REVEAL,
            request_hide=_split_list(hide_str) if hide_str else DEFAULT_REQUEST_HIDE,
            expected_status=int(os.getenv("DISCLOSURE_EXPECTED_STATUS", "200")),
        )

        log = LogConfig(
            level=os.getenv("DISCLOSURE_LOG_LEVEL", "INFO"),
            file_enabled=os.getenv("DISCLOSURE_LOG_FILE", "false").lower() == "true",
        )

        return cls(
            limits=limits,
            parser=parser,
            policy=policy,
            log=log,
            verifier_address=os.getenv("DISCLOSURE_VERIFIER_ADDRESS", "127.0.0.1:8079"),
            data_dir=Path(os.getenv("DISCLOSURE_DATA_DIR", str(Path.home() / ".disclosure"))),
            session_timeout=float(os.getenv("DISCLOSURE_SESSION_TIMEOUT", "300")),
            debug=os.getenv("DISCLOSURE_DEBUG", "false").lower() == "true",
        )


def _split_list(value: str) -> Tuple[str, ...]:
    return tuple(x.strip() for x in value.split(",") if x.strip())


_config: Optional[DisclosureConfig] = None


def get_config() -> DisclosureConfig:
    global _config
    if _config is None:
        _config = DisclosureConfig.from_env()
    return _config


def set_config(config: Optional[DisclosureConfig]) -> None:
    global _config
    _config = config


def setup_logging(config: Optional[DisclosureConfig] = None) -> None:
    """
    Configure Python's logging system based on our settings.

    Call this once at process startup.
    """
    cfg = config or get_config()

    handlers: List[logging.Handler] = [logging.StreamHandler()]

    if cfg.log.file_enabled:
        from logging.handlers import RotatingFileHandler
        cfg.data_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            cfg.data_dir / cfg.log.file_name,
            maxBytes=cfg.log.max_file_size_mb * 1024 * 1024,
            backupCount=cfg.log.backup_count,
        )
        handlers.append(file_handler)

    level = "DEBUG" if cfg.debug else cfg.log.level
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=cfg.log.format,
        handlers=handlers,
        force=True,
    )
