import psycopg2
import pymysql
import pymysql.cursors
from pymysql import err

from services.errors import BackupConnectionError

CONNECT_TIMEOUT = 10


def open_pg_connection(dbname, user, host, password, port):
    """
    Establishes a read-only PostgreSQL connection for exporting

    Args:
        dbname: Database name
        user: Username
        host: Host address
        password: Password
        port: Port number

    Returns:
        (psycopg2.connection, server version string)

    Raises:
        BackupConnectionError: if the server cannot be reached or rejects the login
    """
    try:
        conn = psycopg2.connect(
            dbname=dbname,
            user=user,
            host=host,
            password=password,
            port=port,
            connect_timeout=CONNECT_TIMEOUT,
            sslmode="prefer",
        )
        conn.set_session(readonly=True, autocommit=True)

        with conn.cursor() as cur:
            cur.execute("SELECT version();")
            version = cur.fetchone()[0]
        return conn, version.split(',')[0]
    except psycopg2.OperationalError as e:
        raise BackupConnectionError(
            f"Unable to connect to PostgreSQL {host}:{port}/{dbname}: {str(e).strip()}"
        ) from e


def open_mysql_connection(database, user, host, password, port):
    """
    Establishes a MySQL connection, used to check credentials before dumping

    Returns:
        (pymysql Connection, server version string)

    Raises:
        BackupConnectionError: if the server cannot be reached or rejects the login
    """
    try:
        conn = pymysql.connect(
            host=host,
            port=port,
            user=user,
            password=password,
            database=database,
            connect_timeout=CONNECT_TIMEOUT,
            cursorclass=pymysql.cursors.DictCursor,
        )
        with conn.cursor() as cursor:
            cursor.execute("SELECT VERSION() as version")
            version = cursor.fetchone()["version"]
        return conn, version
    except (err.OperationalError, err.InternalError) as e:
        raise BackupConnectionError(
            f"Unable to connect to MySQL {host}:{port}/{database}: {e}"
        ) from e
