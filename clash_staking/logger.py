# Clash Staking Logger Module
# © 2025 Karlheinz Beismann — VEra-Resonance Project
# Licensed under the Apache License, Version 2.0

import logging
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

ROOT_LOGGER_NAME = "clash_staking"

MAIN_LOG_NAME = "staking.log"
JSON_LOG_NAME = "staking.json"
ERROR_LOG_NAME = "errors.log"

# LOGGER_LEVEL values used by the old TypeScript jobs included "warn"
LEVEL_ALIASES = {
    "warn": "WARNING",
    "fatal": "CRITICAL",
}


class JSONFormatter(logging.Formatter):
    """JSON format for structured logs"""
    def format(self, record):
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False)


def resolve_level(level: Union[str, int]) -> int:
    """Translate a level name like "info" or "warn" into a logging level"""
    if isinstance(level, int):
        return level
    name = LEVEL_ALIASES.get(level.strip().lower(), level.strip().upper())
    resolved = logging.getLevelName(name)
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level}")
    return resolved


def setup_logger(
    name: str = ROOT_LOGGER_NAME,
    level: Union[str, int] = "info",
    log_dir: Optional[Union[str, Path]] = None,
) -> logging.Logger:
    """
    Configure the package logger

    Console output always; with a log_dir also a main log, a JSON log and
    an errors-only log, like the service logs.
    """
    logger = logging.getLogger(name)
    console_level = resolve_level(level)

    # Prevent duplicate handlers; a repeated call only changes the console level
    if logger.handlers:
        file_handlers = [h for h in logger.handlers if isinstance(h, logging.FileHandler)]
        for handler in logger.handlers:
            if handler not in file_handlers:
                handler.setLevel(console_level)
        if not file_handlers:
            logger.setLevel(console_level)
        return logger

    logger.setLevel(logging.DEBUG if log_dir else console_level)

    # ==== CONSOLE ====
    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level)
    console_handler.setFormatter(logging.Formatter(
        '[%(asctime)s] [%(levelname)-8s] %(message)s',
        datefmt='%H:%M:%S'
    ))
    logger.addHandler(console_handler)

    if not log_dir:
        return logger

    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    # ==== MAIN LOG (everything) ====
    main_handler = logging.FileHandler(log_path / MAIN_LOG_NAME, encoding='utf-8')
    main_handler.setLevel(logging.DEBUG)
    main_handler.setFormatter(logging.Formatter(
        '[%(asctime)s] [%(levelname)-8s] [%(name)s:%(funcName)s:%(lineno)d] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))

    # ==== JSON LOG (structured, for analysis) ====
    json_handler = logging.FileHandler(log_path / JSON_LOG_NAME, encoding='utf-8')
    json_handler.setLevel(logging.DEBUG)
    json_handler.setFormatter(JSONFormatter())

    # ==== ERROR LOG (errors only) ====
    error_handler = logging.FileHandler(log_path / ERROR_LOG_NAME, encoding='utf-8')
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(logging.Formatter(
        '[%(asctime)s] [ERROR] [%(name)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))

    logger.addHandler(main_handler)
    logger.addHandler(json_handler)
    logger.addHandler(error_handler)

    return logger


activity_logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.activity")


def log_activity(level, category, message, **extra_data):
    """
    Log an activity with a category

    Example:
        log_activity("INFO", "SYNC", "History written", events=120, last_block=2345)
    """
    full_message = f"[{category}] {message}"
    if extra_data:
        full_message += " | " + " | ".join(f"{k}={v}" for k, v in extra_data.items())

    activity_logger.log(resolve_level(level), full_message)
