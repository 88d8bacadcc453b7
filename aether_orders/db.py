"""
データベース接続

PostgreSQL (asyncpg) が本番、SQLite (aiosqlite) は開発・テスト用。
"""

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)


def create_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    engine = create_async_engine(database_url, echo=echo)
    if engine.dialect.name == "sqlite":
        _use_immediate_transactions(engine)
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def _use_immediate_transactions(engine: AsyncEngine) -> None:
    """
    SQLite のトランザクションを BEGIN IMMEDIATE で開始する。

    デフォルトの遅延 BEGIN では、条件付き UPDATE 同士が共有ロックから
    書き込みロックへの昇格で衝突し "database is locked" になる。
    開始時に書き込みロックを取れば、後続のトランザクションは
    先行のコミットを待ってから最新の在庫を評価する。
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, _connection_record):
        # ドライバ自身の BEGIN 発行を止める
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")
