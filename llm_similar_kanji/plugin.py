from . import db
from .cache import TTLCache
from .errors import ConfigError, FetchError, NoMoreRounds
from .index import INDEX_CACHE_PREFIX, KNOWN_KANJI_CACHE_KEY
from .quiz import QuizSession
from .wanikani import WaniKaniClient
from typing import Any

try:
    import llm  # type: ignore
    hookimpl = llm.hookimpl  # type: ignore
except ImportError:
    import pluggy
    hookimpl = pluggy.HookimplMarker("llm")


def open_session(refresh: bool = False) -> QuizSession:
    """Resolve the token, then build a QuizSession backed by the local cache."""
    if not db.is_db_initialized():
        db.init_db()
    client = WaniKaniClient.from_settings(db.get_api_token())
    return QuizSession.start(client, TTLCache(), refresh=refresh)


@hookimpl  # type: ignore[misc]
def register_commands(cli: Any) -> None:
    import click

    def _start(refresh: bool) -> QuizSession:
        try:
            return open_session(refresh=refresh)
        except ConfigError as e:
            raise click.ClickException(str(e)) from e
        except FetchError as e:
            raise click.ClickException(f"Could not load kanji from WaniKani: {e}") from e

    @cli.command("wk-init-db")  # type: ignore[misc]
    def init_db() -> None:
        """Initialize the similar-kanji database."""
        db.init_db()
        click.echo("Database initialized.")

    @cli.command("wk-set-key")  # type: ignore[misc]
    @click.argument("token")
    def set_key(token: str) -> None:
        """Save the WaniKani API token used for every request."""
        token = token.strip()
        if not token:
            raise click.BadParameter("Token must not be empty", param_hint="TOKEN")
        db.init_db()
        db.save_api_key(token)
        click.echo("API token saved.")

    @cli.command("wk-status")  # type: ignore[misc]
    @click.option("--refresh", is_flag=True, help="Ignore cached data and refetch from WaniKani")
    def status(refresh: bool) -> None:
        """Show how many known kanji can be quizzed."""
        session = _start(refresh)
        click.echo(f"Known kanji:            {len(session.known_ids)}")
        click.echo(f"With similar kanji:     {len(session.index)}")
        click.echo(f"Eligible for quizzing:  {len(session.eligible)}")

    @cli.command("wk-quiz")  # type: ignore[misc]
    @click.option("--rounds", type=int, default=0, help="Stop after this many rounds (0 = until you quit)")
    @click.option("--refresh", is_flag=True, help="Ignore cached data and refetch from WaniKani")
    @click.option("--user", default="default_user", help="Name to record progress under")
    def quiz(rounds: int, refresh: bool, user: str) -> None:
        """Pick the kanji matching the meaning from a set of look-alikes."""
        session = _start(refresh)
        played = correct_count = 0

        while not rounds or played < rounds:
            try:
                round_ = session.next_round()
            except NoMoreRounds:
                click.echo("🎉 No kanji with look-alikes to quiz yet. Keep leveling up!")
                break
            except FetchError as e:
                raise click.ClickException(f"Could not load the next round: {e}") from e

            click.echo("")
            click.echo(f"Meaning: {round_.prompt}")
            for i, character in enumerate(round_.characters, 1):
                click.echo(f"  {i}. {character}")
            choice = click.prompt(
                "Your choice (q to quit)",
                type=click.Choice([str(i) for i in range(1, len(round_.characters) + 1)] + ["q"]),
                show_choices=False,
            )
            if choice == "q":
                break

            correct_character = round_.correct_character
            is_correct = session.answer(round_.characters[int(choice) - 1])
            db.update_progress(user, is_correct)
            played += 1
            if is_correct:
                correct_count += 1
                click.echo("✅ Correct!")
            else:
                click.echo(f"❌ Incorrect. The answer was {correct_character}.")

        if played:
            click.echo(f"\nScore: {correct_count}/{played}")

    @cli.command("wk-progress")  # type: ignore[misc]
    @click.argument("user", default="default_user")
    def show_progress(user: str) -> None:
        """Show quiz progress for a user."""
        db.init_db()
        progress = db.get_progress(user)
        if progress:
            click.echo(f"Progress for {user}:")
            click.echo(f"  Rounds answered: {progress['total_reviews']}")
            click.echo(f"  Correct answers: {progress['correct_answers']}")
            click.echo(f"  Accuracy: {progress['accuracy']:.1f}%")
            click.echo(f"  Last updated: {progress['last_updated']}")
            for day in db.get_daily_progress(user, days=7):
                click.echo(f"  {day['date']}: {day['correct_answers']}/{day['rounds_answered']}")
        else:
            click.echo(f"No progress found for user '{user}'")

    @cli.command("wk-clear-cache")  # type: ignore[misc]
    def clear_cache() -> None:
        """Forget cached known kanji and similarity indexes."""
        db.init_db()
        cache = TTLCache()
        keys = [KNOWN_KANJI_CACHE_KEY] + db.list_keys(INDEX_CACHE_PREFIX)
        for key in keys:
            cache.invalidate(key)
        click.echo(f"Cleared {len(keys)} cache entries.")
