"""Example usage of the dbf_tables library."""

from pathlib import Path

from dbf_tables import DbfDate, DbfTable, describe_table

path = Path("./example_data/people.dbf")
path.parent.mkdir(exist_ok=True)

# Create a table and define its fields using the DSL
with DbfTable.create(path) as table:
    table.add_fields(
        """
        NAME: C(20)
        AGE: N(3)
        BALANCE: N(10, 2)
        BORN: D
        ACTIVE: L
        """
    )

    people = [
        {"NAME": "Alice", "AGE": 30, "BALANCE": 1520.5, "BORN": DbfDate(1994, 3, 2), "ACTIVE": True},
        {"NAME": "Bob", "AGE": 25, "BALANCE": -12.25, "BORN": DbfDate(1999, 11, 17), "ACTIVE": False},
        {"NAME": "Charlie", "AGE": None, "BALANCE": 0, "BORN": None, "ACTIVE": None},
    ]
    for person in people:
        table.write_record(table.record_count, person)

# Reopen read/write, widen a field and drop another
with DbfTable.open(path, "rb+") as table:
    print(describe_table(table))
    print()

    table.alter_field(table.field_index("NAME"), "FULL_NAME", "C", 30)
    table.delete_field(table.field_index("BALANCE"))
    table.mark_record_deleted(1)

    for i in range(table.record_count):
        flag = "*" if table.is_record_deleted(i) else " "
        print(flag, table.read_record(i))
