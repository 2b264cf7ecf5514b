from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from drivebook.core import config


def _engine_options(database_url: str) -> dict:
    if database_url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


engine = create_engine(config.DATABASE_URL, **_engine_options(config.DATABASE_URL))

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_booking_schema_checked = False


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def ensure_booking_schema(bind=None) -> None:
    """Create the scheduling indexes and columns that create_all does not add.

    The partial unique index keeps two live bookings from claiming the same
    start instant for one instructor even when application checks race.
    """
    global _booking_schema_checked

    if _booking_schema_checked and bind is None:
        return

    target = bind or engine

    with _schema_lock:
        if _booking_schema_checked and bind is None:
            return

        inspector = inspect(target)
        table_names = inspector.get_table_names()

        if 'bookings' not in table_names:
            return

        statements = [
            'CREATE INDEX IF NOT EXISTS idx_bookings_instructor_scheduled ON bookings(instructor_id, scheduled_at)',
            'CREATE INDEX IF NOT EXISTS idx_bookings_student_scheduled ON bookings(student_id, scheduled_at)',
            (
                'CREATE UNIQUE INDEX IF NOT EXISTS uq_bookings_live_slot ON bookings(instructor_id, scheduled_at) '
                "WHERE status IN ('pending', 'confirmed')"
            ),
        ]
        if 'instructors' in table_names:
            instructor_columns = {column['name'] for column in inspector.get_columns('instructors')}
            if 'booking_version' not in instructor_columns:
                statements.insert(0, 'ALTER TABLE instructors ADD COLUMN booking_version INTEGER NOT NULL DEFAULT 0')
        if 'availability_rules' in table_names:
            statements.append(
                'CREATE INDEX IF NOT EXISTS idx_availability_rules_lookup '
                'ON availability_rules(instructor_id, day_of_week, is_active)'
            )

        with target.begin() as connection:
            for statement in statements:
                connection.execute(text(statement))

        if bind is None:
            _booking_schema_checked = True
