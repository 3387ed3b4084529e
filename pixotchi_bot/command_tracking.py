"""Discord command usage logging decorator."""
from __future__ import annotations

import functools
import logging
import time
from typing import Any, Callable

import discord

logger = logging.getLogger("pixotchi_bot.commands")


def track_command(func: Callable) -> Callable:
    """Log who ran a slash command, where, whether it succeeded and how long it took."""

    @functools.wraps(func)
    async def wrapper(interaction: discord.Interaction, *args, **kwargs) -> Any:
        command_name = func.__name__
        user_id = str(interaction.user.id)
        channel_id = (
            str(interaction.channel_id)
            if getattr(interaction, "channel_id", None) is not None
            else "dm"
        )
        start_time = time.time()
        success = False

        try:
            result = await func(interaction, *args, **kwargs)
            success = True
            return result
        except Exception as exc:
            logger.error(
                "Command %s failed for user %s: %s: %s",
                command_name,
                user_id,
                type(exc).__name__,
                exc,
            )
            raise
        finally:
            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                "command=%s user=%s channel=%s success=%s duration_ms=%.1f",
                command_name,
                user_id,
                channel_id,
                success,
                duration_ms,
            )

    return wrapper


__all__ = ["track_command"]
