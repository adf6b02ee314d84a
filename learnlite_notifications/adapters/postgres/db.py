from contextlib import contextmanager
from typing import Iterator, Optional

import psycopg2
from psycopg2.extras import RealDictCursor
from psycopg2.pool import ThreadedConnectionPool


class PostgresPool:
    """Connection pool for the LearnLite Postgres database.

    Thread-safe so request threads (publishers) and the worker thread can
    borrow connections concurrently.
    """

    def __init__(self, dsn: str, minconn: int = 1, maxconn: int = 5):
        self._pool = ThreadedConnectionPool(minconn, maxconn, dsn=dsn, cursor_factory=RealDictCursor)

    @contextmanager
    def connection(self) -> Iterator[psycopg2.extensions.connection]:
        conn = self._pool.getconn()
        try:
            yield conn
        finally:
            self._pool.putconn(conn)

    @contextmanager
    def transaction(self) -> Iterator[psycopg2.extensions.connection]:
        """Borrow a connection for one transaction: commit on exit, roll back on error.

        A connection whose rollback fails is closed instead of returned to the pool.
        """
        conn = self._pool.getconn()
        discard = False
        try:
            yield conn
            conn.commit()
        except Exception:
            try:
                conn.rollback()
            except psycopg2.Error:
                discard = True
            raise
        finally:
            self._pool.putconn(conn, close=discard or bool(conn.closed))

    def close(self) -> None:
        self._pool.closeall()


def fetch_one(conn, query: str, params: Optional[tuple] = None):
    with conn.cursor() as cur:
        cur.execute(query, params or ())
        return cur.fetchone()


def execute(conn, query: str, params: Optional[tuple] = None) -> None:
    with conn.cursor() as cur:
        cur.execute(query, params or ())
    conn.commit()
