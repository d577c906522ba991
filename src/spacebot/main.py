"""
SpaceBot
========

A Discord bot that runs server automations: stored rules that react to
gateway events (members joining, messages, reactions, commands...) by
running moderation and messaging actions.
"""

import os
import sys
from pathlib import Path


def resolve_base_dir() -> Path:
    """Determine the base directory of the project.

    Resolution order:
    1. SPACEBOT_HOME environment variable, if set.
    2. If running in a frozen/compiled context, use the executable's directory.
    3. Otherwise, assume running from source and use the grandparent of this file's directory.
    """
    if env_home := os.getenv("SPACEBOT_HOME"):
        return Path(env_home).resolve()

    if getattr(sys, "frozen", False) or getattr(sys, "compiled", False):
        return Path(sys.argv[0]).resolve().parent

    return Path(__file__).resolve().parents[2]


BASE_DIR = resolve_base_dir()
os.chdir(BASE_DIR)

import asyncio
import discord
from dotenv import load_dotenv

from spacebot.automation.actions import ActionExecutor
from spacebot.automation.runner import AutomationRunner
from spacebot.configuration.app_configuration import app_config
from spacebot.database.database import Database
from spacebot.util.logger import get_logger, handle_exception


logger = get_logger("main")


def load_environment() -> str:
    """Load environment variables and return the Discord bot token.

    Raises
    ------
    SystemExit
        If the required ``DISCORD_BOT_TOKEN`` variable is missing.
    """
    load_dotenv(dotenv_path=BASE_DIR / ".env")
    token = os.getenv("DISCORD_BOT_TOKEN")
    if not token:
        logger.critical("'DISCORD_BOT_TOKEN' environment variable not set. Bot cannot start.")
        sys.exit(1)
    return token


def build_intents() -> discord.Intents:
    """Construct the intents needed by the automation triggers.

    Returns
    -------
    discord.Intents
        Intents enabling guild, member, message, reaction and voice events.
    """
    intents = discord.Intents.default()
    intents.message_content = True
    intents.guilds = True
    intents.members = True
    intents.messages = True
    intents.reactions = True
    intents.voice_states = True
    intents.bans = True
    return intents


def load_cogs(discord_bot_instance: discord.Bot, runner: AutomationRunner) -> None:
    """Register all operational cogs with the provided Discord bot instance."""
    from spacebot.bot.cogs import automation_listener

    automation_listener.setup(discord_bot_instance, runner)

    logger.info("All cogs loaded successfully.")


def create_bot(database: Database) -> discord.Bot:
    """Instantiate the Discord bot, the automation engine and all cogs."""
    bot = discord.Bot(intents=build_intents())
    settings = app_config.automation

    executor = ActionExecutor.from_settings(bot, settings)
    runner = AutomationRunner(
        database.automations,
        executor,
        ignore_bot_events=settings.ignore_bot_events,
    )
    load_cogs(bot, runner)
    return bot


async def start_bot(bot: discord.Bot, token: str) -> None:
    """Start the Discord bot and log around the connection lifecycle."""
    logger.info("Attempting to connect to Discord…")
    try:
        await bot.start(token)
    except asyncio.CancelledError:
        logger.info("Discord bot start cancelled; shutting down")
    finally:
        logger.info("Discord bot start routine finished.")


async def shutdown_runtime(bot: discord.Bot | None, database: Database) -> None:
    """Close the Discord connection and the database."""
    if bot is not None and not bot.is_closed():
        try:
            await bot.close()
        except Exception as exc:
            logger.exception("Error while closing Discord bot: %s", exc)

    try:
        await database.shutdown()
    except Exception as exc:
        logger.exception("Error during database shutdown: %s", exc)

    logger.info("Shutdown complete.")


async def async_main() -> int:
    """Bootstrap the database and the bot, returning an exit code."""
    token = load_environment()

    database = Database(
        app_config.database_path,
        rules_ttl=app_config.automation.rules_cache_ttl_seconds,
    )
    logger.info("Initializing database...")
    if not await database.initialize():
        logger.critical("Failed to initialize database at %s", database.db_path)
        return 1

    try:
        bot = create_bot(database)
    except Exception as exc:
        logger.critical("Failed to initialize Discord bot: %s", exc)
        await shutdown_runtime(None, database)
        return 1

    exit_code = 0
    try:
        await start_bot(bot, token)
    except Exception as exc:
        logger.critical("Discord bot runtime error: %s", exc)
        exit_code = 1
    finally:
        await shutdown_runtime(bot, database)

    return exit_code


def main() -> int:
    """Entrypoint that runs the async runtime and returns the process exit code."""
    logger.info("Starting SpaceBot…")
    try:
        return asyncio.run(async_main())
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user.")
        return 0
    except SystemExit as exit_exc:
        code = exit_exc.code
        if isinstance(code, int):
            return code
        if code is None:
            return 1
        try:
            return int(code)
        except (ValueError, TypeError):
            logger.warning("SystemExit.code is not an int (%r); defaulting to 1", code)
            return 1
    except Exception as exc:
        logger.critical("An unexpected error occurred while running the bot: %s", exc)
        return 1


if __name__ == "__main__":
    sys.excepthook = handle_exception
    sys.exit(main())
