"""
db_utils.py - Database Utility Module

This module provides the record store of the family register: the
`people` and `families` tables kept in an SQLite database, exposed
through a small generic contract (find / get / insert / update /
delete / delete_where) that the family-graph engine builds on.

List-valued columns (`families`, `parent_families`, `children`) are
stored as JSON arrays; booleans are stored as 0/1 and returned as bool.
"""

import os
import json
import sqlite3
from contextlib import contextmanager
from typing import Optional, List, Dict, Any, Tuple, Iterable
import funcUtils as fu
from err_utils import StoreError, NotFoundError
from dotenv import load_dotenv
import logging

# Load environment variables from .env file
load_dotenv(".env")

# Configure log for this module
log = logging.getLogger(__name__)
# Set log level from environment variable or default to WARNING
log_level = os.getenv('LOGGING', 'WARNING').upper()
log.setLevel(getattr(logging, log_level, logging.WARNING))

# Configure console handler for debug output
console_handler = logging.StreamHandler()
console_handler.setLevel(log_level)
formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s')
console_handler.setFormatter(formatter)
log.addHandler(console_handler)

# Database configuration
database_name = os.getenv("DB_NAME", "data/giapha.db")

db_tables = {
    "people": os.getenv("TBL_PEOPLE", "people"),
    "families": os.getenv("TBL_FAMILIES", "families"),
}

# Used in the 'gender' field of the people table
Gender = {
    'male': 1,
    'female': 2
}

# Columns of each logical table, in schema order
Table_Columns = {
    "people": [
        'handle', 'display_name', 'gender', 'generation',
        'birth_year', 'birth_date', 'birth_place',
        'death_year', 'death_date', 'death_place',
        'is_living', 'is_privacy_filtered', 'is_patrilineal',
        'nick_name', 'phone', 'email', 'zalo', 'facebook',
        'current_address', 'hometown', 'occupation', 'company',
        'education', 'notes',
        'families', 'parent_families',
        'created_at', 'updated_at'
    ],
    "families": [
        'handle', 'father_handle', 'mother_handle', 'children',
        'created_at', 'updated_at'
    ],
}

List_Columns = {'families', 'parent_families', 'children'}
Bool_Columns = {'is_living', 'is_privacy_filtered', 'is_patrilineal'}

# Log database configuration
log.debug(f"Database configuration:")
log.debug(f"- Database name: {database_name}")
log.debug(f"- Log level: {log_level}")
log.debug(f"- Database tables: {db_tables}")


def get_db_connection(db_file: Optional[str] = None) -> sqlite3.Connection:
    """
    Create and return a database connection.

    Args:
        db_file: Path of the SQLite file, defaults to DB_NAME

    Returns:
        sqlite3.Connection: A connection to the SQLite database
    """
    conn = sqlite3.connect(db_file or database_name)
    conn.row_factory = sqlite3.Row  # Enable column access by name
    return conn


def init_db(db_file: Optional[str] = None) -> None:
    """
    Initialize the database by creating the people and families
    tables, their indexes and timestamp triggers if they don't exist.

    Raises:
        StoreError: If the schema cannot be created
    """
    db_file = db_file or database_name
    folder = os.path.dirname(db_file)
    if folder:
        os.makedirs(folder, exist_ok=True)

    conn = get_db_connection(db_file)
    try:
        cursor = conn.cursor()

        # Database optimization settings
        cursor.execute("PRAGMA journal_mode = WAL")
        cursor.execute("PRAGMA synchronous = NORMAL")
        cursor.execute("PRAGMA temp_store = MEMORY")

        # Create people table
        cursor.execute(f"""
        CREATE TABLE IF NOT EXISTS {db_tables['people']} (
            handle TEXT PRIMARY KEY,
            display_name TEXT NOT NULL,
            gender INTEGER DEFAULT 1,
            generation INTEGER DEFAULT 1,
            birth_year INTEGER,
            birth_date TEXT,
            birth_place TEXT,
            death_year INTEGER,
            death_date TEXT,
            death_place TEXT,
            is_living INTEGER DEFAULT 1,
            is_privacy_filtered INTEGER DEFAULT 0,
            is_patrilineal INTEGER DEFAULT 1,
            nick_name TEXT,
            phone TEXT,
            email TEXT,
            zalo TEXT,
            facebook TEXT,
            current_address TEXT,
            hometown TEXT,
            occupation TEXT,
            company TEXT,
            education TEXT,
            notes TEXT,
            families TEXT DEFAULT '[]',         -- families where this person is father/mother
            parent_families TEXT DEFAULT '[]',  -- family where this person is a child
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
        """)

        # Create families table: one parental union, either slot may be empty
        cursor.execute(f"""
        CREATE TABLE IF NOT EXISTS {db_tables['families']} (
            handle TEXT PRIMARY KEY,
            father_handle TEXT,
            mother_handle TEXT,
            children TEXT DEFAULT '[]',
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
        """)

        # Create indexes to improve query performance
        cursor.execute(f"CREATE INDEX IF NOT EXISTS idx_people_name ON {db_tables['people']}(display_name)")
        cursor.execute(f"CREATE INDEX IF NOT EXISTS idx_people_generation ON {db_tables['people']}(generation)")
        cursor.execute(f"CREATE INDEX IF NOT EXISTS idx_families_father ON {db_tables['families']}(father_handle)")
        cursor.execute(f"CREATE INDEX IF NOT EXISTS idx_families_mother ON {db_tables['families']}(mother_handle)")

        conn.commit()
        log.debug(f"Database initialized: {db_file}")
    except sqlite3.Error as e:
        error_msg = f"Database error in {fu.get_function_name()}: {str(e)}"
        log.error(error_msg)
        raise StoreError(error_msg) from e
    finally:
        conn.close()


def _to_row(record: Dict[str, Any]) -> Dict[str, Any]:
    """Convert a record into column values SQLite can store."""
    row = {}
    for field, value in record.items():
        if field in List_Columns:
            row[field] = json.dumps(list(value or []), ensure_ascii=False)
        elif field in Bool_Columns and value is not None:
            row[field] = 1 if value else 0
        else:
            row[field] = value
    return row


def _from_row(row: sqlite3.Row) -> Dict[str, Any]:
    """Convert an SQLite row back into a record dictionary."""
    record = dict(row)
    for field in List_Columns:
        if field in record:
            raw = record[field]
            record[field] = json.loads(raw) if raw else []
    for field in Bool_Columns:
        if field in record and record[field] is not None:
            record[field] = bool(record[field])
    return record


class RecordStore:
    """
    Generic record store over the people and families tables.

    Every method opens its own connection and commits, unless it runs
    inside `transaction()`, in which case all statements share the
    transaction's connection and are committed or rolled back together.

    Example:
        >>> store = RecordStore('data/giapha.db')
        >>> store.insert('people', {'display_name': 'Nguyen Van A'})
        {'handle': 'p-1700000000000-a1b2c3', 'display_name': 'Nguyen Van A', ...}
    """

    def __init__(self, db_file: Optional[str] = None):
        self.db_file = db_file or database_name
        self._tx_conn: Optional[sqlite3.Connection] = None
        init_db(self.db_file)

    # ----- connection handling -----

    @contextmanager
    def _cursor(self):
        if self._tx_conn is not None:
            yield self._tx_conn.cursor()
            return

        conn = get_db_connection(self.db_file)
        try:
            cursor = conn.cursor()
            yield cursor
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def transaction(self):
        """
        Run a group of store calls atomically.

        Nested calls join the outer transaction.

        Raises:
            StoreError: If the transaction cannot be started or committed
        """
        if self._tx_conn is not None:
            yield self
            return

        try:
            conn = get_db_connection(self.db_file)
            conn.execute("BEGIN TRANSACTION")
        except sqlite3.Error as e:
            error_msg = f"Database error in {fu.get_function_name()}: cannot begin transaction: {str(e)}"
            log.error(error_msg)
            raise StoreError(error_msg) from e

        self._tx_conn = conn
        try:
            yield self
            conn.commit()
            log.debug("Transaction committed")
        except sqlite3.Error as e:
            conn.rollback()
            error_msg = f"Database error in {fu.get_function_name()}: transaction rolled back: {str(e)}"
            log.error(error_msg)
            raise StoreError(error_msg) from e
        except Exception as e:
            conn.rollback()
            log.error(f"Transaction rolled back due to error: {str(e)}")
            raise
        finally:
            self._tx_conn = None
            conn.close()

    @property
    def in_transaction(self) -> bool:
        return self._tx_conn is not None

    def _table(self, table: str) -> str:
        if table not in db_tables:
            raise ValueError(f"Unknown table: {table}. Must be one of {list(db_tables)}")
        return db_tables[table]

    def _check_columns(self, table: str, fields: Iterable[str]) -> None:
        unknown = [f for f in fields if f not in Table_Columns[table]]
        if unknown:
            raise ValueError(f"Unknown column(s) for {table}: {', '.join(unknown)}")

    def _run(self, op: str, sql: str, params: Iterable[Any] = ()) -> Tuple[List[sqlite3.Row], int]:
        """Execute one statement, returning (rows, rowcount)."""
        try:
            with self._cursor() as cursor:
                cursor.execute(sql, list(params))
                rows = cursor.fetchall() if cursor.description else []
                return rows, cursor.rowcount
        except sqlite3.Error as e:
            error_msg = f"Database error in {op}: {str(e)}"
            log.error(error_msg)
            raise StoreError(error_msg) from e

    # ----- record store contract -----

    def find(
        self,
        table: str,
        where: Optional[Dict[str, Any]] = None,
        contains: Optional[Dict[str, Any]] = None,
        either: Optional[Dict[str, Any]] = None,
        order_by: Optional[List[str]] = None,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """
        Retrieve the records matching all the given filters.

        Args:
            table: 'people' or 'families'
            where: column -> value equality filters. None matches NULL,
                a list/tuple/set matches any of its values (IN).
            contains: list column -> value, matches records whose list
                column contains the value
            either: column -> value, matches when ANY pair is equal
            order_by: column names, prefix '-' for descending.
                Defaults to insertion order.
            limit: maximum number of records

        Returns:
            List[Dict[str, Any]]: matching records

        Raises:
            ValueError: If the table or a column is unknown
            StoreError: If the query fails

        Example:
            >>> store.find('families', where={'father_handle': 'A', 'mother_handle': None})
            >>> store.find('families', contains={'children': 'B'})
            >>> store.find('families', either={'father_handle': 'S', 'mother_handle': 'S'})
        """
        tbl = self._table(table)
        clauses = []
        params: List[Any] = []

        for col, value in (where or {}).items():
            self._check_columns(table, [col])
            if value is None:
                clauses.append(f"{col} IS NULL")
            elif isinstance(value, (list, tuple, set)):
                values = list(value)
                if not values:
                    return []
                clauses.append(f"{col} IN ({', '.join('?' * len(values))})")
                params.extend(values)
            else:
                clauses.append(f"{col} = ?")
                params.append(value)

        for col, value in (contains or {}).items():
            if col not in List_Columns:
                raise ValueError(f"Column {col} is not a list column")
            self._check_columns(table, [col])
            clauses.append(f"EXISTS (SELECT 1 FROM json_each({tbl}.{col}) WHERE json_each.value = ?)")
            params.append(value)

        if either:
            self._check_columns(table, either.keys())
            clauses.append("(" + " OR ".join(f"{col} = ?" for col in either) + ")")
            params.extend(either.values())

        sql = f"SELECT * FROM {tbl}"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)

        if order_by:
            self._check_columns(table, [c.lstrip('-') for c in order_by])
            sql += " ORDER BY " + ", ".join(
                f"{c[1:]} DESC" if c.startswith('-') else c for c in order_by)
        else:
            sql += " ORDER BY rowid"

        if limit:
            sql += " LIMIT ?"
            params.append(int(limit))

        rows, _ = self._run('find', sql, params)
        return [_from_row(row) for row in rows]

    def get(self, table: str, handle: str) -> Optional[Dict[str, Any]]:
        """Retrieve one record by handle, or None if it doesn't exist."""
        tbl = self._table(table)
        rows, _ = self._run('get', f"SELECT * FROM {tbl} WHERE handle = ?", (handle,))
        return _from_row(rows[0]) if rows else None

    def insert(self, table: str, record: Dict[str, Any]) -> Dict[str, Any]:
        """
        Insert a new record.

        A handle is generated when the record doesn't carry one:
        'p-...' for people, 'f-<first parent>-...' for families.
        List columns default to empty lists.

        Returns:
            Dict[str, Any]: the created record as stored

        Raises:
            ValueError: If the table or a column is unknown
            StoreError: If the insert fails (e.g. duplicate handle)
        """
        tbl = self._table(table)
        self._check_columns(table, record.keys())

        data = dict(record)
        if not data.get('handle'):
            if table == 'people':
                data['handle'] = fu.new_handle('p')
            else:
                base = data.get('father_handle') or data.get('mother_handle')
                data['handle'] = fu.new_handle('f', base)
        for col in List_Columns:
            if col in Table_Columns[table]:
                data.setdefault(col, [])
        stamp = fu.now_iso()
        data.setdefault('created_at', stamp)
        data.setdefault('updated_at', stamp)

        row = _to_row(data)
        fields = list(row.keys())
        sql = f"""
            INSERT INTO {tbl} ({', '.join(fields)})
            VALUES ({', '.join('?' * len(fields))})
        """
        self._run('insert', sql, row.values())
        log.debug(f"Inserted {table} record: {data['handle']}")

        created = self.get(table, data['handle'])
        if created is None:
            raise NotFoundError(table, data['handle'])
        return created

    def update(self, table: str, handle: str, partial: Dict[str, Any]) -> bool:
        """
        Update the given fields of one record; `updated_at` is stamped.

        Returns:
            bool: True if a record was updated, False if the handle was
            not found or there was nothing to update

        Raises:
            ValueError: If the table or a column is unknown, or the
                handle itself is being changed
            StoreError: If the update fails
        """
        tbl = self._table(table)
        if 'handle' in partial and partial['handle'] != handle:
            raise ValueError("A record handle cannot be changed")
        changes = {k: v for k, v in partial.items() if k != 'handle'}
        if not changes:
            log.warning(f"No fields to update for {table} record {handle}")
            return False
        self._check_columns(table, changes.keys())
        changes.setdefault('updated_at', fu.now_iso())

        row = _to_row(changes)
        set_clause = ", ".join(f"{field} = ?" for field in row)
        params = list(row.values()) + [handle]
        _, rowcount = self._run('update', f"UPDATE {tbl} SET {set_clause} WHERE handle = ?", params)

        if rowcount > 0:
            log.debug(f"Updated {table} record {handle}. Fields: {', '.join(changes)}")
            return True
        log.warning(f"No {table} record found with handle {handle} to update")
        return False

    def delete(self, table: str, handle: str) -> bool:
        """Delete one record. Returns False if the handle was not found."""
        tbl = self._table(table)
        _, rowcount = self._run('delete', f"DELETE FROM {tbl} WHERE handle = ?", (handle,))
        if rowcount > 0:
            log.debug(f"Deleted {table} record {handle}")
            return True
        log.warning(f"Attempted to delete non-existent {table} record: {handle}")
        return False

    def delete_where(self, table: str, handles: Iterable[str]) -> int:
        """
        Delete a batch of records by handle.

        Returns:
            int: number of records deleted
        """
        tbl = self._table(table)
        handles = list(handles)
        if not handles:
            return 0
        sql = f"DELETE FROM {tbl} WHERE handle IN ({', '.join('?' * len(handles))})"
        _, rowcount = self._run('delete_where', sql, handles)
        log.debug(f"Deleted {rowcount} {table} record(s)")
        return rowcount

    def snapshot(self) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
        """
        Read the whole people and families tables in one go.

        Returns:
            Tuple[List, List]: (people, families) in insertion order
        """
        try:
            with self._cursor() as cursor:
                cursor.execute(f"SELECT * FROM {db_tables['people']} ORDER BY rowid")
                people = [_from_row(r) for r in cursor.fetchall()]
                cursor.execute(f"SELECT * FROM {db_tables['families']} ORDER BY rowid")
                families = [_from_row(r) for r in cursor.fetchall()]
        except sqlite3.Error as e:
            error_msg = f"Database error in {fu.get_function_name()}: {str(e)}"
            log.error(error_msg)
            raise StoreError(error_msg) from e
        log.debug(f"Snapshot: {len(people)} people, {len(families)} families")
        return people, families

    def count(self, table: str) -> int:
        tbl = self._table(table)
        rows, _ = self._run('count', f"SELECT COUNT(*) FROM {tbl}")
        return rows[0][0] if rows else 0


# ----- Queries used by the admin pages -----

def get_people(store: RecordStore, search: str = "") -> List[Dict[str, Any]]:
    """
    Retrieve people ordered by generation, then display name,
    optionally filtered by a case-insensitive name fragment.
    """
    people = store.find('people', order_by=['generation', 'display_name'])
    if search:
        needle = search.strip().lower()
        people = [p for p in people if needle in (p['display_name'] or '').lower()]
    return people


def get_person(store: RecordStore, handle: str) -> Dict[str, Any]:
    """
    Retrieve one person.

    Raises:
        NotFoundError: If no person has this handle
    """
    person = store.get('people', handle)
    if person is None:
        raise NotFoundError('people', handle)
    return person


def get_parents(store: RecordStore, handle: str) -> List[Dict[str, Any]]:
    """
    Retrieve the father and/or mother records of a person, taken from
    the family that lists the person as a child.
    """
    person = get_person(store, handle)
    if not person['parent_families']:
        return []
    family = store.get('families', person['parent_families'][0])
    if not family:
        return []
    parents = []
    for slot in ('father_handle', 'mother_handle'):
        if family[slot]:
            parent = store.get('people', family[slot])
            if parent:
                parents.append(parent)
    return parents


def get_children(store: RecordStore, handle: str) -> List[Dict[str, Any]]:
    """Retrieve the children of a person across all their families."""
    families = store.find('families', either={'father_handle': handle, 'mother_handle': handle})
    child_handles = []
    for family in families:
        for child in family['children']:
            if child not in child_handles:
                child_handles.append(child)
    if not child_handles:
        return []
    children = store.find('people', where={'handle': child_handles})
    order = {h: i for i, h in enumerate(child_handles)}
    return sorted(children, key=lambda c: order[c['handle']])


def get_family_details(store: RecordStore, handle: str) -> Dict[str, Any]:
    """
    Collect what a person page shows about a person's family.

    Returns:
        Dict[str, Any]: {
            'person': the person record,
            'parents': list of parent records,
            'families': [{'handle', 'partner', 'children'}, ...]
                for each family where the person is father or mother
        }

    Raises:
        NotFoundError: If no person has this handle
    """
    person = get_person(store, handle)
    details = {
        'person': person,
        'parents': get_parents(store, handle),
        'families': []
    }
    for family_handle in person['families']:
        family = store.get('families', family_handle)
        if not family:
            log.warning(f"Person {handle} lists missing family {family_handle}")
            continue
        partner_handle = family['mother_handle'] if family['father_handle'] == handle else family['father_handle']
        partner = store.get('people', partner_handle) if partner_handle else None
        children = store.find('people', where={'handle': family['children']}) if family['children'] else []
        order = {h: i for i, h in enumerate(family['children'])}
        children.sort(key=lambda c: order[c['handle']])
        details['families'].append({
            'handle': family_handle,
            'partner': partner,
            'children': children
        })
    return details
