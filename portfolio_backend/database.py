import logging
from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from portfolio_backend.core import config

logger = logging.getLogger(__name__)

DATABASE_URL = config.DATABASE_URL

connect_args = {'check_same_thread': False} if DATABASE_URL.startswith('sqlite') else {}
engine = create_engine(DATABASE_URL, connect_args=connect_args)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_appointment_schema_checked = False


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def ensure_appointment_schema(bind=None) -> None:
    """Bring an existing ``appointments`` table up to the current index set.

    ``create_all`` only creates missing tables, so databases created before the
    active-slot constraint existed get it added here.
    """
    global _appointment_schema_checked

    if _appointment_schema_checked and bind is None:
        return

    bind = bind or engine

    with _schema_lock:
        inspector = inspect(bind)

        if 'appointments' not in inspector.get_table_names():
            _appointment_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('appointments')}
        migration_steps = [
            ('admin_notes', "ALTER TABLE appointments ADD COLUMN admin_notes VARCHAR DEFAULT ''"),
            ('ip_address', "ALTER TABLE appointments ADD COLUMN ip_address VARCHAR DEFAULT ''"),
            ('user_agent', "ALTER TABLE appointments ADD COLUMN user_agent VARCHAR DEFAULT ''"),
        ]

        with bind.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_time_range ON appointments(start_time, end_time)')
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_start_status ON appointments(start_time, status)')
            )
            connection.execute(
                text(
                    'CREATE UNIQUE INDEX IF NOT EXISTS uq_appointments_active_start ON appointments(start_time) '
                    "WHERE status IN ('pending', 'confirmed')"
                )
            )

        _appointment_schema_checked = True
        logger.debug('Appointment schema verified.')
