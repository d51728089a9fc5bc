# -*- coding: utf-8 -*-
# -------------------------------------------------------------------------------
# Name:         versusdb
# Purpose:      Common functions for working with the database back-end.
#
# Licence:     MIT
# -------------------------------------------------------------------------------

from pathlib import Path
import json
import logging
import sqlite3
import threading
import time

log = logging.getLogger(f"versus.{__name__}")


class VersusDb:
    """Versus database

    Attributes:
        conn: SQLite connect() connection
        dbh: SQLite cursor() database handle
        dbhLock (_thread.RLock): thread lock on database handle
    """

    dbh = None
    conn = None

    # Prevent multithread access to sqlite database
    dbhLock = threading.RLock()

    # Queries for creating the Versus database
    createSchemaQueries = [
        "PRAGMA journal_mode=WAL",
        "CREATE TABLE tbl_config ( \
            scope   VARCHAR NOT NULL, \
            opt     VARCHAR NOT NULL, \
            val     VARCHAR NOT NULL, \
            PRIMARY KEY (scope, opt) \
        )",
        "CREATE TABLE tbl_comparison ( \
            id              VARCHAR NOT NULL PRIMARY KEY, \
            name            VARCHAR NOT NULL, \
            slug            VARCHAR NOT NULL UNIQUE, \
            description     VARCHAR, \
            properties_json TEXT NOT NULL DEFAULT '[]', \
            created         INT DEFAULT 0 \
        )",
        "CREATE TABLE tbl_contender ( \
            id                  VARCHAR NOT NULL PRIMARY KEY, \
            comparison_id       VARCHAR NOT NULL REFERENCES tbl_comparison(id), \
            name                VARCHAR NOT NULL, \
            description         VARCHAR, \
            pros_json           TEXT NOT NULL DEFAULT '[]', \
            cons_json           TEXT NOT NULL DEFAULT '[]', \
            properties_json     TEXT NOT NULL DEFAULT '{}', \
            attachments_json    TEXT NOT NULL DEFAULT '[]', \
            hyperlinks_json     TEXT NOT NULL DEFAULT '[]', \
            created             INT DEFAULT 0 \
        )",
        "CREATE INDEX idx_contender_comparison ON tbl_contender (comparison_id)",
    ]

    def __init__(self, opts: dict, init: bool = False) -> None:
        """Initialize database and create handle to the SQLite database file.
        Creates the database file if it does not exist.
        Creates database schema if it does not exist.

        Args:
            opts (dict): must specify the database file path in the '__database' key
            init (bool): initialise the database schema.
                         if the database file does not exist this option will be ignored.

        Raises:
            TypeError: arg type was invalid
            ValueError: arg value was invalid
            IOError: database I/O failed
        """

        if not isinstance(opts, dict):
            raise TypeError(f"opts is {type(opts)}; expected dict()") from None
        if not opts:
            raise ValueError("opts is empty") from None
        if not opts.get('__database'):
            raise ValueError("opts['__database'] is empty") from None

        database_path = opts['__database']

        # create database directory
        Path(database_path).parent.mkdir(exist_ok=True, parents=True)

        try:
            dbh = sqlite3.connect(database_path, check_same_thread=False)
        except Exception as e:
            raise IOError(f"Error connecting to internal database {database_path}") from e

        dbh.text_factory = str

        self.conn = dbh
        self.dbh = dbh.cursor()

        with self.dbhLock:
            try:
                self.dbh.execute('SELECT COUNT(*) FROM tbl_contender')
            except sqlite3.Error:
                init = True

            if init:
                try:
                    self.create()
                except Exception as e:
                    raise IOError("Tried to set up the Versus database schema, but failed") from e

    #
    # Back-end database operations
    #

    def create(self) -> None:
        """Create the database schema.

        Raises:
            IOError: database I/O failed
        """

        with self.dbhLock:
            try:
                for qry in self.createSchemaQueries:
                    if qry.startswith("CREATE TABLE"):
                        qry = qry.replace("CREATE TABLE", "CREATE TABLE IF NOT EXISTS", 1)
                    elif qry.startswith("CREATE INDEX"):
                        qry = qry.replace("CREATE INDEX", "CREATE INDEX IF NOT EXISTS", 1)
                    self.dbh.execute(qry)
                self.conn.commit()
            except sqlite3.Error as e:
                raise IOError("SQL error encountered when setting up database") from e

    def close(self) -> None:
        """Close the database handle."""

        with self.dbhLock:
            self.dbh.close()
            self.conn.close()

    #
    # Configuration
    #

    def configSet(self, optMap: dict = {}) -> bool:
        """Store configuration options in the database.

        Keys of the form 'SCOPE:opt' are stored under SCOPE, all others under GLOBAL.

        Args:
            optMap (dict): config options

        Returns:
            bool: success

        Raises:
            TypeError: arg type was invalid
            ValueError: arg value was invalid
            IOError: database I/O failed
        """

        if not isinstance(optMap, dict):
            raise TypeError(f"optMap is {type(optMap)}; expected dict()") from None
        if not optMap:
            raise ValueError("optMap is empty") from None

        qry = "REPLACE INTO tbl_config (scope, opt, val) VALUES (?, ?, ?)"

        with self.dbhLock:
            for opt in list(optMap.keys()):
                if ":" in opt:
                    parts = opt.split(':', 1)
                    qvals = [parts[0], parts[1], optMap[opt]]
                else:
                    qvals = ["GLOBAL", opt, optMap[opt]]

                try:
                    self.dbh.execute(qry, qvals)
                except sqlite3.Error as e:
                    raise IOError("SQL error encountered when storing config, aborting") from e

            try:
                self.conn.commit()
            except sqlite3.Error as e:
                raise IOError("SQL error encountered when storing config, aborting") from e

        return True

    def configGet(self) -> dict:
        """Retreive the config from the database

        Returns:
            dict: config

        Raises:
            IOError: database I/O failed
        """

        qry = "SELECT scope, opt, val FROM tbl_config"

        retval = dict()

        with self.dbhLock:
            try:
                self.dbh.execute(qry)
                for [scope, opt, val] in self.dbh.fetchall():
                    if scope == "GLOBAL":
                        retval[opt] = val
                    else:
                        retval[f"{scope}:{opt}"] = val

                return retval
            except sqlite3.Error as e:
                raise IOError("SQL error encountered when fetching configuration") from e

    def configClear(self) -> None:
        """Reset the config to default.

        Raises:
            IOError: database I/O failed
        """

        qry = "DELETE from tbl_config"
        with self.dbhLock:
            try:
                self.dbh.execute(qry)
                self.conn.commit()
            except sqlite3.Error as e:
                raise IOError("Unable to clear configuration from the database") from e

    #
    # Comparisons
    #

    def _comparisonFromRow(self, row) -> dict:
        return {
            'id': row[0],
            'name': row[1],
            'slug': row[2],
            'description': row[3],
            'properties': json.loads(row[4] or '[]'),
            'created_at': row[5],
        }

    def comparisonGetAll(self) -> list:
        """Get all comparisons, most recent first.

        Returns:
            list: comparison dicts

        Raises:
            IOError: database I/O failed
        """

        qry = "SELECT id, name, slug, description, properties_json, created \
            FROM tbl_comparison ORDER BY created DESC"

        with self.dbhLock:
            try:
                self.dbh.execute(qry)
                return [self._comparisonFromRow(row) for row in self.dbh.fetchall()]
            except sqlite3.Error as e:
                raise IOError("SQL error encountered when fetching comparisons") from e

    def comparisonGet(self, comparisonId: str) -> dict:
        """Get a comparison by ID.

        Args:
            comparisonId (str): comparison ID

        Returns:
            dict: comparison, or None if not found

        Raises:
            TypeError: arg type was invalid
            IOError: database I/O failed
        """

        if not isinstance(comparisonId, str):
            raise TypeError(f"comparisonId is {type(comparisonId)}; expected str()") from None

        qry = "SELECT id, name, slug, description, properties_json, created \
            FROM tbl_comparison WHERE id = ?"

        with self.dbhLock:
            try:
                self.dbh.execute(qry, [comparisonId])
                row = self.dbh.fetchone()
            except sqlite3.Error as e:
                raise IOError("SQL error encountered when fetching comparison") from e

        return self._comparisonFromRow(row) if row else None

    def comparisonGetBySlug(self, slug: str) -> dict:
        """Get a comparison by slug.

        Args:
            slug (str): comparison slug

        Returns:
            dict: comparison, or None if not found

        Raises:
            TypeError: arg type was invalid
            IOError: database I/O failed
        """

        if not isinstance(slug, str):
            raise TypeError(f"slug is {type(slug)}; expected str()") from None

        qry = "SELECT id, name, slug, description, properties_json, created \
            FROM tbl_comparison WHERE slug = ?"

        with self.dbhLock:
            try:
                self.dbh.execute(qry, [slug])
                row = self.dbh.fetchone()
            except sqlite3.Error as e:
                raise IOError("SQL error encountered when fetching comparison") from e

        return self._comparisonFromRow(row) if row else None

    def comparisonSlugs(self, prefix: str) -> list:
        """Get all comparison slugs beginning with a prefix.

        Args:
            prefix (str): slug prefix

        Returns:
            list: slugs

        Raises:
            IOError: database I/O failed
        """

        qry = "SELECT slug FROM tbl_comparison WHERE slug LIKE ? ESCAPE '\\'"
        pattern = prefix.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_') + '%'

        with self.dbhLock:
            try:
                self.dbh.execute(qry, [pattern])
                return [row[0] for row in self.dbh.fetchall()]
            except sqlite3.Error as e:
                raise IOError("SQL error encountered when fetching comparison slugs") from e

    def comparisonSave(self, comparison: dict) -> None:
        """Insert or replace a comparison.

        Args:
            comparison (dict): comparison with id, name, slug, description, properties, created_at

        Raises:
            TypeError: arg type was invalid
            IOError: database I/O failed
        """

        if not isinstance(comparison, dict):
            raise TypeError(f"comparison is {type(comparison)}; expected dict()") from None

        qry = "REPLACE INTO tbl_comparison \
            (id, name, slug, description, properties_json, created) \
            VALUES (?, ?, ?, ?, ?, ?)"

        with self.dbhLock:
            try:
                self.dbh.execute(qry, (
                    comparison['id'],
                    comparison['name'],
                    comparison['slug'],
                    comparison.get('description'),
                    json.dumps(comparison.get('properties') or []),
                    comparison.get('created_at') or int(time.time() * 1000),
                ))
                self.conn.commit()
            except sqlite3.Error as e:
                raise IOError("Unable to store comparison in database") from e

    def comparisonDelete(self, comparisonId: str) -> None:
        """Delete a comparison and all of its contenders.

        Args:
            comparisonId (str): comparison ID

        Raises:
            TypeError: arg type was invalid
            IOError: database I/O failed
        """

        if not isinstance(comparisonId, str):
            raise TypeError(f"comparisonId is {type(comparisonId)}; expected str()") from None

        with self.dbhLock:
            try:
                self.dbh.execute("DELETE FROM tbl_contender WHERE comparison_id = ?", [comparisonId])
                self.dbh.execute("DELETE FROM tbl_comparison WHERE id = ?", [comparisonId])
                self.conn.commit()
            except sqlite3.Error as e:
                raise IOError("SQL error encountered when deleting comparison") from e

    #
    # Contenders
    #

    def _contenderFromRow(self, row) -> dict:
        return {
            'id': row[0],
            'comparison_id': row[1],
            'name': row[2],
            'description': row[3],
            'pros': json.loads(row[4] or '[]'),
            'cons': json.loads(row[5] or '[]'),
            'properties': json.loads(row[6] or '{}'),
            'attachments': json.loads(row[7] or '[]'),
            'hyperlinks': json.loads(row[8] or '[]'),
            'created_at': row[9],
        }

    def contenderGetAll(self, comparisonId: str = None) -> list:
        """Get contenders, optionally only those of one comparison.

        Args:
            comparisonId (str): comparison ID

        Returns:
            list: contender dicts in creation order

        Raises:
            IOError: database I/O failed
        """

        qry = "SELECT id, comparison_id, name, description, pros_json, cons_json, \
            properties_json, attachments_json, hyperlinks_json, created \
            FROM tbl_contender"
        qvars = []
        if comparisonId:
            qry += " WHERE comparison_id = ?"
            qvars.append(comparisonId)
        qry += " ORDER BY created"

        with self.dbhLock:
            try:
                self.dbh.execute(qry, qvars)
                return [self._contenderFromRow(row) for row in self.dbh.fetchall()]
            except sqlite3.Error as e:
                raise IOError("SQL error encountered when fetching contenders") from e

    def contenderGet(self, contenderId: str) -> dict:
        """Get a contender by ID.

        Args:
            contenderId (str): contender ID

        Returns:
            dict: contender, or None if not found

        Raises:
            TypeError: arg type was invalid
            IOError: database I/O failed
        """

        if not isinstance(contenderId, str):
            raise TypeError(f"contenderId is {type(contenderId)}; expected str()") from None

        qry = "SELECT id, comparison_id, name, description, pros_json, cons_json, \
            properties_json, attachments_json, hyperlinks_json, created \
            FROM tbl_contender WHERE id = ?"

        with self.dbhLock:
            try:
                self.dbh.execute(qry, [contenderId])
                row = self.dbh.fetchone()
            except sqlite3.Error as e:
                raise IOError("SQL error encountered when fetching contender") from e

        return self._contenderFromRow(row) if row else None

    def contenderSave(self, contender: dict) -> None:
        """Insert or replace a contender.

        Args:
            contender (dict): contender record

        Raises:
            TypeError: arg type was invalid
            IOError: database I/O failed
        """

        if not isinstance(contender, dict):
            raise TypeError(f"contender is {type(contender)}; expected dict()") from None

        qry = "REPLACE INTO tbl_contender \
            (id, comparison_id, name, description, pros_json, cons_json, \
            properties_json, attachments_json, hyperlinks_json, created) \
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)"

        with self.dbhLock:
            try:
                self.dbh.execute(qry, (
                    contender['id'],
                    contender['comparison_id'],
                    contender['name'],
                    contender.get('description'),
                    json.dumps(contender.get('pros') or []),
                    json.dumps(contender.get('cons') or []),
                    json.dumps(contender.get('properties') or {}),
                    json.dumps(contender.get('attachments') or []),
                    json.dumps(contender.get('hyperlinks') or []),
                    contender.get('created_at') or int(time.time() * 1000),
                ))
                self.conn.commit()
            except sqlite3.Error as e:
                raise IOError("Unable to store contender in database") from e

    def contenderDelete(self, contenderId: str) -> None:
        """Delete a contender.

        Args:
            contenderId (str): contender ID

        Raises:
            TypeError: arg type was invalid
            IOError: database I/O failed
        """

        if not isinstance(contenderId, str):
            raise TypeError(f"contenderId is {type(contenderId)}; expected str()") from None

        with self.dbhLock:
            try:
                self.dbh.execute("DELETE FROM tbl_contender WHERE id = ?", [contenderId])
                self.conn.commit()
            except sqlite3.Error as e:
                raise IOError("SQL error encountered when deleting contender") from e
