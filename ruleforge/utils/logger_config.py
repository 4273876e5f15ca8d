import logging
from typing import Optional


class EmojiFormatter(logging.Formatter):
    """
    A custom log formatter that adds an emoji to the beginning of the log message
    based on the log level.
    """

    LEVEL_EMOJIS = {
        logging.DEBUG: "🐛",
        logging.INFO: "✅",
        logging.WARNING: "⚠️",
        logging.ERROR: "❌",
        logging.CRITICAL: "🔥",
    }

    def format(self, record):
        s = super().format(record)
        emoji = self.LEVEL_EMOJIS.get(record.levelno, "")
        return f"{emoji} {s}"


def setup_logging(level: Optional[str] = None):
    """
    Configures the root logger with the custom EmojiFormatter.
    This function should be called once at the application's entry point.

    Args:
        level: Level name such as "INFO". Defaults to DEBUG so that rule
            evaluation traces are visible while authoring rulesets.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, (level or "DEBUG").upper(), logging.DEBUG))

    console_handler = logging.StreamHandler()
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    console_handler.setFormatter(EmojiFormatter(log_format))

    # Remove any existing handlers to avoid duplicate logs
    if root_logger.hasHandlers():
        root_logger.handlers.clear()

    root_logger.addHandler(console_handler)
