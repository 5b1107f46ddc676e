from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine


def ensure_runtime_schema(engine: Engine) -> None:
    # Lightweight runtime migration for local dev SQLite databases.
    with engine.begin() as connection:
        inspector = inspect(connection)
        tables = set(inspector.get_table_names())
        if "player_stats" not in tables:
            return

        stats_columns = {column["name"] for column in inspector.get_columns("player_stats")}
        if "wins" not in stats_columns:
            connection.execute(
                text("ALTER TABLE player_stats ADD COLUMN wins INTEGER NOT NULL DEFAULT 0")
            )
        if "games_played" not in stats_columns:
            connection.execute(
                text("ALTER TABLE player_stats ADD COLUMN games_played INTEGER NOT NULL DEFAULT 0")
            )
        if "updated_at" not in stats_columns:
            connection.execute(text("ALTER TABLE player_stats ADD COLUMN updated_at DATETIME"))

        connection.execute(
            text("CREATE INDEX IF NOT EXISTS ix_player_stats_wins ON player_stats(wins)")
        )
