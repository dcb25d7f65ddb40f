"""Table definitions for the durable key/value layer."""

from sqlalchemy import Column, MetaData, String, Table, Text

KEY_LENGTH = 255


def key_value_table(name: str, metadata: MetaData) -> Table:
    """
    Get the key/value table called ``name``, defining it on first use.

    Args:
        name: Table name
        metadata: MetaData the table belongs to

    Returns:
        Table with ``key`` (primary key) and ``value`` columns
    """
    if name in metadata.tables:
        return metadata.tables[name]

    return Table(
        name,
        metadata,
        Column("key", String(KEY_LENGTH), primary_key=True),
        Column("value", Text, nullable=True),
    )
