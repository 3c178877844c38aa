"""
Database Migration Script
Brings an existing SQLite database up to the current schema without deleting data
"""
import sqlite3
import os

# Columns added after the first release, per table: (name, type, default)
ADDED_COLUMNS = {
    "customers": [
        ("pan_file_path", "VARCHAR(500)", None),
        ("aadhar_file_path", "VARCHAR(500)", None),
        ("created_by", "INTEGER", None),
    ],
    "properties": [
        ("quantity", "NUMERIC(12, 2)", "1"),
        ("gst_percentage", "NUMERIC(5, 2)", "0"),
        ("gst_amount", "NUMERIC(15, 2)", "0"),
        ("other_expenses", "NUMERIC(15, 2)", "0"),
        ("period_years", "INTEGER", None),
        ("amount_per_month", "NUMERIC(15, 2)", None),
        ("payment_mode", "VARCHAR(10)", None),
        ("super_built_up_area", "NUMERIC(12, 2)", None),
    ],
    "sell_properties": [
        ("quantity", "NUMERIC(12, 2)", "1"),
        ("other_charges", "NUMERIC(15, 2)", "0"),
        ("discount_amount", "NUMERIC(15, 2)", "0"),
        ("period_years", "INTEGER", None),
        ("amount_per_month", "NUMERIC(15, 2)", None),
        ("payment_receipt", "VARCHAR(500)", None),
    ],
    "transactions": [
        ("emi_id", "INTEGER", None),
        ("sell_emi_id", "INTEGER", None),
        ("transaction_no", "VARCHAR(100)", None),
        ("payment_receipt", "VARCHAR(500)", None),
    ],
    "emis": [
        ("transaction_no", "VARCHAR(100)", None),
        ("payment_receipt", "VARCHAR(500)", None),
    ],
    "sell_emis": [
        ("transaction_no", "VARCHAR(100)", None),
        ("payment_receipt", "VARCHAR(500)", None),
    ],
    "property_documents": [
        ("sell_property_id", "INTEGER", None),
    ],
    "users": [
        ("last_login", "DATETIME", None),
    ],
}

# Uniqueness among live rows only, so a trashed record frees its keys
PARTIAL_INDEXES = [
    ("uq_customers_phone_active", "customers", "phone"),
    ("uq_customers_pan_active", "customers", "pan_number"),
    ("uq_customers_aadhar_active", "customers", "aadhar_number"),
    ("uq_users_email_active", "users", "email"),
]


def resolve_db_path(db_url: str) -> str:
    if db_url.startswith("file:"):
        db_path = db_url[5:]
    elif db_url.startswith("sqlite:///"):
        db_path = db_url[10:]
    elif db_url.startswith("sqlite://"):
        db_path = db_url[9:]
    else:
        db_path = db_url

    # Relative paths are relative to the backend directory
    if not os.path.isabs(db_path):
        db_path = os.path.join(os.path.dirname(__file__), db_path)
    return db_path


def migrate_database():
    """Run database migrations"""
    db_path = resolve_db_path(os.environ.get("DATABASE_URL", "sqlite:///./estatedesk.db"))

    if not os.path.exists(db_path):
        print("Database file not found. It will be created when the app starts.")
        return

    conn = sqlite3.connect(db_path)
    cursor = conn.cursor()

    def table_exists(table_name):
        cursor.execute("SELECT name FROM sqlite_master WHERE type='table' AND name=?", (table_name,))
        return cursor.fetchone() is not None

    def get_table_columns(table_name):
        cursor.execute(f"PRAGMA table_info({table_name})")
        return [row[1] for row in cursor.fetchall()]

    def add_column_if_not_exists(table, column, column_type, default_value=None):
        if column in get_table_columns(table):
            print(f"  Column {column} already exists in {table}")
            return False
        if default_value is not None:
            cursor.execute(f"ALTER TABLE {table} ADD COLUMN {column} {column_type} DEFAULT {default_value}")
        else:
            cursor.execute(f"ALTER TABLE {table} ADD COLUMN {column} {column_type}")
        print(f"✓ Added column {column} to {table}")
        return True

    def replace_unique_with_partial(index_name, table, column):
        cursor.execute(f"PRAGMA index_list({table})")
        for row in cursor.fetchall():
            name, unique = row[1], row[2]
            if name == index_name:
                print(f"  Index {index_name} already exists")
                return
            # Older schemas carried a plain UNIQUE index on the column
            if unique and not name.startswith("sqlite_autoindex"):
                cursor.execute(f"PRAGMA index_info({name})")
                if [r[2] for r in cursor.fetchall()] == [column]:
                    cursor.execute(f"DROP INDEX {name}")
                    print(f"✓ Dropped full unique index {name} on {table}.{column}")
        cursor.execute(f"CREATE UNIQUE INDEX {index_name} ON {table} ({column}) WHERE is_deleted = 0")
        print(f"✓ Created partial unique index {index_name}")

    try:
        for table, columns in ADDED_COLUMNS.items():
            if not table_exists(table):
                print(f"  Table {table} doesn't exist, it will be created on startup")
                continue
            # Soft delete flag first: the partial indexes depend on it
            add_column_if_not_exists(table, "is_deleted", "BOOLEAN NOT NULL", "0")
            for column, column_type, default_value in columns:
                add_column_if_not_exists(table, column, column_type, default_value)

        for table in ("roles",):
            if table_exists(table):
                add_column_if_not_exists(table, "is_deleted", "BOOLEAN NOT NULL", "0")

        for index_name, table, column in PARTIAL_INDEXES:
            if table_exists(table):
                replace_unique_with_partial(index_name, table, column)

        conn.commit()
        print("Migration completed.")
    except sqlite3.Error as e:
        conn.rollback()
        print(f"✗ Migration failed, no changes applied: {e}")
        raise
    finally:
        conn.close()


if __name__ == "__main__":
    migrate_database()
