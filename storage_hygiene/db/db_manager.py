import os
import sqlite3
from contextlib import contextmanager
from typing import Generator, Optional

from storage_hygiene.common.log_utils import LogUtils
from storage_hygiene.common.utils import Utils
from storage_hygiene.db.db_constants import DBConstants


class DBManager:
    """
    用途：数据库管理类，负责连接获取、建表、版本升级与事务管理
    """
    _instance: Optional['DBManager'] = None

    DB_NAME: str = 'storage_hygiene.db'

    _db_path: str = os.path.join(Utils.get_runtime_path(), DB_NAME)

    def __new__(cls) -> 'DBManager':
        """
        用途说明：单例模式，全局只有一个数据库管理器实例。
        返回值说明：DBManager 实例
        """
        if cls._instance is None:
            cls._instance = super(DBManager, cls).__new__(cls)
        return cls._instance

    @classmethod
    def set_db_path(cls, db_path: str) -> None:
        """
        用途说明：切换数据库文件位置（多实例部署、测试隔离时使用），切换后需重新调用 init_db。
        入参说明：db_path (str) - 新的数据库文件路径
        """
        cls._db_path = db_path

    @classmethod
    def get_db_path(cls) -> str:
        return cls._db_path

    def get_connection(self) -> sqlite3.Connection:
        """
        用途说明：获取数据库连接，启用 WAL 与 NORMAL 同步以提升并发读写性能。
        返回值说明：sqlite3.Connection - 数据库连接对象
        """
        conn: sqlite3.Connection = sqlite3.connect(DBManager._db_path, timeout=30)
        try:
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=NORMAL;")
        except sqlite3.Error as e:
            LogUtils.error(f"启用 WAL 模式失败: {e}")
        return conn

    @contextmanager
    def transaction(self) -> Generator[sqlite3.Connection, None, None]:
        """
        用途说明：事务上下文管理器，正常退出自动提交，异常时回滚并继续抛出。
        返回值说明：Generator[sqlite3.Connection, None, None] - 数据库连接
        """
        conn: sqlite3.Connection = self.get_connection()
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception as e:
            conn.rollback()
            LogUtils.error(f"事务执行失败，已回滚: {e}")
            raise
        finally:
            conn.close()

    def init_db(self) -> None:
        """
        用途说明：初始化数据库：建表、读取版本号并在需要时执行升级。
        """
        conn: sqlite3.Connection = self.get_connection()
        try:
            cursor: sqlite3.Cursor = conn.cursor()

            # 1. 版本信息表
            cursor.execute(f'''
                CREATE TABLE IF NOT EXISTS {DBConstants.VersionInfo.TABLE_NAME} (
                    {DBConstants.VersionInfo.COL_VERSION} INTEGER PRIMARY KEY
                )
            ''')

            # 2. 读取当前版本
            cursor.execute(f"SELECT {DBConstants.VersionInfo.COL_VERSION} FROM {DBConstants.VersionInfo.TABLE_NAME}")
            row = cursor.fetchone()
            current_db_version: int = row[0] if row else 0

            # 3. 业务表
            self._create_tables(cursor)

            # 4. 版本检查与升级
            target_version: int = DBConstants.DB_VERSION
            if current_db_version == 0:
                cursor.execute(
                    f"INSERT INTO {DBConstants.VersionInfo.TABLE_NAME} ({DBConstants.VersionInfo.COL_VERSION}) VALUES (?)",
                    (target_version,)
                )
                LogUtils.info(f"数据库初始化成功，版本: {target_version}")
            elif current_db_version < target_version:
                LogUtils.info(f"检测到数据库版本更新: {current_db_version} -> {target_version}，开始执行适配...")
                self.migrate_db_version(current_db_version, target_version, cursor)
                cursor.execute(
                    f"UPDATE {DBConstants.VersionInfo.TABLE_NAME} SET {DBConstants.VersionInfo.COL_VERSION} = ?",
                    (target_version,)
                )
                LogUtils.info("数据库版本适配完成")

            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            LogUtils.error(f"数据库初始化或升级失败: {e}")
            raise
        finally:
            conn.close()

    def _create_tables(self, cursor: sqlite3.Cursor) -> None:
        """
        用途说明：创建全部业务表与索引（由 init_db 调用）。
        入参说明：cursor - 数据库游标对象
        """
        ref = DBConstants.ReferenceRecord
        cursor.execute(f'''
            CREATE TABLE IF NOT EXISTS {ref.TABLE_NAME} (
                {ref.COL_ID} INTEGER PRIMARY KEY AUTOINCREMENT,
                {ref.COL_RECORD_KEY} TEXT NOT NULL UNIQUE,
                {ref.COL_ASSET_ID} TEXT NOT NULL,
                {ref.COL_REFERENCE_COUNT} INTEGER DEFAULT 0,
                {ref.COL_SOURCES} TEXT NOT NULL DEFAULT '[]',
                {ref.COL_LAST_SCANNED_AT} DATETIME,
                {ref.COL_PENDING_DELETE} INTEGER DEFAULT 0
            )
        ''')
        cursor.execute(f'''
            CREATE INDEX IF NOT EXISTS idx_reference_records_asset
            ON {ref.TABLE_NAME} ({ref.COL_ASSET_ID})
        ''')

        broken = DBConstants.BrokenLink
        cursor.execute(f'''
            CREATE TABLE IF NOT EXISTS {broken.TABLE_NAME} (
                {broken.COL_ID} INTEGER PRIMARY KEY AUTOINCREMENT,
                {broken.COL_RECORD_KEY} TEXT NOT NULL UNIQUE,
                {broken.COL_URL} TEXT NOT NULL,
                {broken.COL_SOURCES} TEXT NOT NULL DEFAULT '[]',
                {broken.COL_SOURCE_COUNT} INTEGER DEFAULT 0,
                {broken.COL_SOURCE_TYPES} TEXT DEFAULT '',
                {broken.COL_DISCOVERED_AT} DATETIME,
                {broken.COL_PENDING_DELETE} INTEGER DEFAULT 0
            )
        ''')

        group = DBConstants.DuplicateGroup
        cursor.execute(f'''
            CREATE TABLE IF NOT EXISTS {group.TABLE_NAME} (
                {group.COL_ID} INTEGER PRIMARY KEY AUTOINCREMENT,
                {group.COL_RECORD_KEY} TEXT NOT NULL UNIQUE,
                {group.COL_CONTENT_HASH} TEXT NOT NULL,
                {group.COL_FILE_SIZE} INTEGER DEFAULT 0,
                {group.COL_FILE_COUNT} INTEGER DEFAULT 0,
                {group.COL_SAVABLE_BYTES} INTEGER DEFAULT 0,
                {group.COL_RECOMMENDED_KEEP_ID} TEXT,
                {group.COL_PENDING_DELETE} INTEGER DEFAULT 0,
                {group.COL_CREATE_TIME} DATETIME DEFAULT CURRENT_TIMESTAMP
            )
        ''')
        cursor.execute(f'''
            CREATE INDEX IF NOT EXISTS idx_duplicate_groups_hash
            ON {group.TABLE_NAME} ({group.COL_CONTENT_HASH})
        ''')

        member = DBConstants.DuplicateMember
        cursor.execute(f'''
            CREATE TABLE IF NOT EXISTS {member.TABLE_NAME} (
                {member.COL_ID} INTEGER PRIMARY KEY AUTOINCREMENT,
                {member.COL_GROUP_ID} INTEGER NOT NULL,
                {member.COL_ASSET_ID} TEXT NOT NULL,
                {member.COL_DISPLAY_NAME} TEXT,
                {member.COL_SIZE} INTEGER DEFAULT 0,
                {member.COL_UPLOAD_TIME} DATETIME,
                {member.COL_REFERENCE_COUNT} INTEGER DEFAULT 0,
                {member.COL_POSITION} INTEGER DEFAULT 0
            )
        ''')
        cursor.execute(f'''
            CREATE INDEX IF NOT EXISTS idx_duplicate_members_group
            ON {member.TABLE_NAME} ({member.COL_GROUP_ID})
        ''')

        white = DBConstants.WhitelistEntry
        cursor.execute(f'''
            CREATE TABLE IF NOT EXISTS {white.TABLE_NAME} (
                {white.COL_ID} INTEGER PRIMARY KEY AUTOINCREMENT,
                {white.COL_URL_PATTERN} TEXT NOT NULL UNIQUE,
                {white.COL_MATCH_MODE} TEXT NOT NULL DEFAULT '{DBConstants.MatchMode.EXACT}',
                {white.COL_NOTE} TEXT,
                {white.COL_CREATED_AT} DATETIME
            )
        ''')

        status = DBConstants.ScanStatus
        cursor.execute(f'''
            CREATE TABLE IF NOT EXISTS {status.TABLE_NAME} (
                {status.COL_SCAN_TYPE} TEXT PRIMARY KEY,
                {status.COL_PHASE} TEXT NOT NULL,
                {status.COL_START_TIME} DATETIME,
                {status.COL_LAST_SCAN_TIME} DATETIME,
                {status.COL_COUNTERS} TEXT NOT NULL DEFAULT '{{}}',
                {status.COL_ERROR_MESSAGE} TEXT,
                {status.COL_VERSION} INTEGER NOT NULL DEFAULT 0
            )
        ''')

        batch = DBConstants.BatchStatus
        cursor.execute(f'''
            CREATE TABLE IF NOT EXISTS {batch.TABLE_NAME} (
                {batch.COL_ID} INTEGER PRIMARY KEY,
                {batch.COL_TASK_ID} TEXT,
                {batch.COL_PHASE} TEXT NOT NULL,
                {batch.COL_ASSET_IDS} TEXT NOT NULL DEFAULT '[]',
                {batch.COL_KEEP_ORIGINAL} INTEGER DEFAULT 0,
                {batch.COL_TOTAL} INTEGER DEFAULT 0,
                {batch.COL_PROCESSED} INTEGER DEFAULT 0,
                {batch.COL_SUCCEEDED} INTEGER DEFAULT 0,
                {batch.COL_FAILED} INTEGER DEFAULT 0,
                {batch.COL_SKIPPED} INTEGER DEFAULT 0,
                {batch.COL_FAILED_ITEMS} TEXT NOT NULL DEFAULT '[]',
                {batch.COL_SKIPPED_ITEMS} TEXT NOT NULL DEFAULT '[]',
                {batch.COL_SAVED_BYTES} INTEGER DEFAULT 0,
                {batch.COL_KEPT_ORIGINAL_COUNT} INTEGER DEFAULT 0,
                {batch.COL_START_TIME} DATETIME,
                {batch.COL_END_TIME} DATETIME,
                {batch.COL_ERROR_MESSAGE} TEXT,
                {batch.COL_VERSION} INTEGER NOT NULL DEFAULT 0
            )
        ''')

        cleanup = DBConstants.CleanupLog
        cursor.execute(f'''
            CREATE TABLE IF NOT EXISTS {cleanup.TABLE_NAME} (
                {cleanup.COL_ID} INTEGER PRIMARY KEY AUTOINCREMENT,
                {cleanup.COL_ASSET_ID} TEXT NOT NULL,
                {cleanup.COL_DISPLAY_NAME} TEXT,
                {cleanup.COL_SIZE} INTEGER DEFAULT 0,
                {cleanup.COL_REASON} TEXT NOT NULL,
                {cleanup.COL_OPERATOR} TEXT,
                {cleanup.COL_DELETED_AT} DATETIME,
                {cleanup.COL_ERROR_MESSAGE} TEXT
            )
        ''')

        processing = DBConstants.ProcessingLog
        cursor.execute(f'''
            CREATE TABLE IF NOT EXISTS {processing.TABLE_NAME} (
                {processing.COL_ID} INTEGER PRIMARY KEY AUTOINCREMENT,
                {processing.COL_TASK_ID} TEXT,
                {processing.COL_ASSET_ID} TEXT NOT NULL,
                {processing.COL_ORIGINAL_FILENAME} TEXT,
                {processing.COL_RESULT_FILENAME} TEXT,
                {processing.COL_ORIGINAL_SIZE} INTEGER DEFAULT 0,
                {processing.COL_RESULT_SIZE} INTEGER DEFAULT 0,
                {processing.COL_STATUS} TEXT NOT NULL,
                {processing.COL_MESSAGE} TEXT,
                {processing.COL_PROCESSED_AT} DATETIME
            )
        ''')

    def migrate_db_version(self, old_version: int, new_version: int, cursor: sqlite3.Cursor) -> None:
        """
        用途说明：数据库版本迁移，处理不同版本间的结构差异。
        入参说明：
            old_version (int): 当前库中的版本号
            new_version (int): 目标版本号（DBConstants.DB_VERSION）
            cursor (sqlite3.Cursor): 数据库游标
        """
        member = DBConstants.DuplicateMember
        if old_version < 2:
            cursor.execute(f"PRAGMA table_info({member.TABLE_NAME})")
            existing_cols = {row[1] for row in cursor.fetchall()}
            if member.COL_UPLOAD_TIME not in existing_cols:
                cursor.execute(f"ALTER TABLE {member.TABLE_NAME} ADD COLUMN {member.COL_UPLOAD_TIME} DATETIME")
                LogUtils.info(f"数据库升级到版本 {new_version}: 已为 {member.TABLE_NAME} 添加上传时间字段")


db_manager: DBManager = DBManager()
