"""Tests for adding, deleting, reordering and altering fields."""

import pytest

from dbf_tables import (
    DbfTable,
    FieldType,
    InvalidArgument,
    ResourceLimitExceeded,
)


@pytest.fixture
def people(tmp_path):
    """Create a table of three people with NAME C(10), AGE N(3) and BORN D."""
    path = tmp_path / "people.dbf"
    with DbfTable.create(path) as table:
        table.add_fields("NAME: C(10), AGE: N(3), BORN: D")
        rows = [("Alice", 30, "19940302"), ("Bob", None, "19991117"), ("Carol", 7, None)]
        for i, (name, age, born) in enumerate(rows):
            table.write_string(i, 0, name)
            if age is None:
                table.write_null(i, 1)
            else:
                table.write_integer(i, 1, age)
            if born is None:
                table.write_null(i, 2)
            else:
                table.write_raw(i, 2, born)
    return path


def _file_size_matches(path, table):
    expected = table.header_length + table.record_count * table.record_length
    if table.write_end_of_file_char:
        expected += 1
    return path.stat().st_size == expected


class TestAddField:
    """Tests for appending fields."""

    def test_add_to_empty_table(self, tmp_path):
        """Test adding fields before any record exists."""
        with DbfTable.create(tmp_path / "t.dbf") as table:
            assert table.add_field("NAME", "C", 20) == 0
            assert table.add_field("AGE", FieldType.INTEGER, 3) == 1
            assert table.record_length == 24
            assert table.header_length == 97

    def test_add_fills_existing_records_with_null(self, people):
        """Test that existing records get the new field as NULL."""
        with DbfTable.open(people, "rb+") as table:
            assert table.add_field("SCORE", "N", 5, 1) == 3
            assert table.add_field("NOTE", "C", 4) == 4

            for i in range(3):
                assert table.is_null(i, 3)
                assert table.is_null(i, 4)
            assert table.read_string(0, 0) == "Alice"
            assert table.read_integer(0, 1) == 30
            assert table.read_string(2, 0) == "Carol"
            assert table.is_null(1, 1)

        with DbfTable.open(people) as table:
            assert table.field_count == 5
            assert table.read_string(1, 2) == "19991117"
            assert table.read_tuple(0)[-9:] == b"***** " + b"   "
            assert _file_size_matches(people, table)

    def test_decimals_dropped_for_text(self, tmp_path):
        """Test that text fields never keep decimals."""
        with DbfTable.create(tmp_path / "t.dbf") as table:
            table.add_field("NAME", "C", 10, 3)
            assert table.field_info(0).decimals == 0

    def test_width_limits(self, tmp_path):
        """Test the per-field width bounds."""
        with DbfTable.create(tmp_path / "t.dbf") as table:
            with pytest.raises(InvalidArgument):
                table.add_field("ZERO", "C", 0)
            with pytest.raises(ResourceLimitExceeded):
                table.add_field("WIDE", "C", 255)
            assert table.field_count == 0

    def test_record_length_limit(self, tmp_path):
        """Test that records cannot grow past 65535 bytes."""
        with DbfTable.create(tmp_path / "t.dbf") as table:
            for i in range(258):
                table.add_field(f"F{i}", "C", 254)
            assert table.record_length == 65533
            with pytest.raises(ResourceLimitExceeded):
                table.add_field("LAST", "C", 3)
            assert table.field_count == 258

    def test_header_length_limit(self, tmp_path):
        """Test that the header cannot grow past 65535 bytes."""
        with DbfTable.create(tmp_path / "t.dbf") as table:
            for i in range(2046):
                table.add_field(f"F{i}", "L", 1)
            with pytest.raises(ResourceLimitExceeded):
                table.add_field("LAST", "L", 1)

    def test_long_name_is_cut(self, tmp_path):
        """Test that a name longer than a descriptor holds is stored cut."""
        path = tmp_path / "t.dbf"
        with DbfTable.create(path) as table:
            table.add_field("LONGFIELDNAME", "C", 4)
            assert table.fields[0].name == "LONGFIELDN"
            assert table.field_index("LONGFIELDN") == 0
            table.write_string(0, 0, "abcd")

        with DbfTable.open(path) as table:
            assert table.field_index("LONGFIELDN") == 0
            assert table.read_string(0, 0) == "abcd"

    def test_add_then_delete_restores_file(self, people):
        """Test that deleting a just-added field leaves the original bytes."""
        before = people.read_bytes()
        with DbfTable.open(people, "rb+") as table:
            table.add_field("EXTRA", "N", 7, 2)
            table.delete_field(3)

        after = people.read_bytes()
        assert len(after) == len(before)
        assert after[32:] == before[32:]

class TestDeleteField:
    """Tests for removing fields."""

    def test_delete_scenario(self, tmp_path):
        """Test deleting NAME from the one-record people table."""
        path = tmp_path / "people.dbf"
        with DbfTable.create(path) as table:
            table.add_field("NAME", "C", 20)
            table.add_field("AGE", "N", 3)
            table.write_string(0, 0, "Alice")
            table.write_integer(0, 1, 30)

        with DbfTable.open(path, "rb+") as table:
            table.delete_field(0)
            assert table.field_count == 1
            assert table.record_length == 4
            assert table.read_integer(0, 0) == 30

        with DbfTable.open(path) as table:
            assert table.header_length == 65
            assert table.read_integer(0, 0) == 30
        assert path.stat().st_size == 65 + 4 + 1

    def test_delete_middle_field(self, people):
        """Test that the fields around a deleted one keep their values."""
        with DbfTable.open(people, "rb+") as table:
            table.mark_record_deleted(1)
            table.delete_field(1)

            assert [f.name for f in table.fields] == ["NAME", "BORN"]
            assert [table.read_string(i, 0) for i in range(3)] == ["Alice", "Bob", "Carol"]
            assert table.read_string(0, 1) == "19940302"
            assert table.is_null(2, 1)
            assert table.is_record_deleted(1)
            assert _file_size_matches(people, table)

    def test_delete_bad_index(self, people):
        """Test that deleting a missing field raises."""
        with DbfTable.open(people, "rb+") as table:
            with pytest.raises(InvalidArgument):
                table.delete_field(3)
            assert table.field_count == 3

    def test_delete_before_header_written(self, tmp_path):
        """Test deleting from a table that has no records yet."""
        with DbfTable.create(tmp_path / "t.dbf") as table:
            table.add_fields("A: C(2), B: N(4)")
            table.delete_field(0)
            assert table.describe() == "B: N(4)"
            assert table.header_length == 65


class TestReorderFields:
    """Tests for permuting fields."""

    def test_reorder(self, people):
        """Test that values follow their fields."""
        with DbfTable.open(people, "rb+") as table:
            table.reorder_fields([2, 0, 1])
            assert [f.name for f in table.fields] == ["BORN", "NAME", "AGE"]
            assert table.read_string(0, 0) == "19940302"
            assert table.read_string(0, 1) == "Alice"
            assert table.read_integer(0, 2) == 30

        with DbfTable.open(people) as table:
            assert table.read_string(2, 1) == "Carol"
            assert table.is_null(1, 2)
            assert table.is_null(2, 0)

    def test_identity_reorder_changes_nothing(self, people):
        """Test that the identity permutation leaves schema and records alone."""
        before = people.read_bytes()
        with DbfTable.open(people, "rb+") as table:
            table.reorder_fields([0, 1, 2])
            assert [f.name for f in table.fields] == ["NAME", "AGE", "BORN"]

        assert people.read_bytes()[32:] == before[32:]

    def test_reorder_then_inverse_restores_file(self, people):
        """Test that applying a permutation and then its inverse restores the bytes."""
        before = people.read_bytes()
        with DbfTable.open(people, "rb+") as table:
            table.reorder_fields([2, 0, 1])
            table.reorder_fields([1, 2, 0])
            assert [f.name for f in table.fields] == ["NAME", "AGE", "BORN"]

        assert people.read_bytes()[32:] == before[32:]

    def test_reorder_invalid(self, people):
        """Test that a bad permutation changes nothing."""
        with DbfTable.open(people, "rb+") as table:
            with pytest.raises(InvalidArgument):
                table.reorder_fields([0, 0, 1])
            assert [f.name for f in table.fields] == ["NAME", "AGE", "BORN"]
            assert table.read_string(0, 0) == "Alice"

    def test_reorder_no_fields(self, tmp_path):
        """Test that reordering an empty schema is a no-op."""
        with DbfTable.create(tmp_path / "t.dbf") as table:
            table.reorder_fields([])


class TestAlterField:
    """Tests for changing field definitions."""

    def test_rename(self, people):
        """Test a rename leaves the data alone."""
        with DbfTable.open(people, "rb+") as table:
            table.alter_field(0, "FULLNAME", "C", 10)
            assert table.field_index("FULLNAME") == 0
            assert table.read_string(1, 0) == "Bob"

    def test_widen_text(self, people):
        """Test that widened text is padded on the right."""
        with DbfTable.open(people, "rb+") as table:
            table.alter_field(0, "NAME", "C", 15)
            assert table.record_length == 1 + 15 + 3 + 8
            assert table.read_string(0, 0) == "Alice"
            assert table.read_integer(0, 1) == 30
            assert table.read_string(2, 2) == "00000000"
            assert _file_size_matches(people, table)

    def test_widen_number(self, people):
        """Test that widened numbers are padded on the left."""
        with DbfTable.open(people, "rb+") as table:
            table.alter_field(1, "AGE", "N", 6)
            assert table.read_tuple(0)[11:17] == b"    30"
            assert table.read_integer(0, 1) == 30
            assert table.read_tuple(1)[11:17] == b"******"
            assert table.is_null(1, 1)
            assert table.read_string(0, 2) == "19940302"

    def test_narrow_text(self, people):
        """Test that narrowed text keeps its leading bytes."""
        with DbfTable.open(people, "rb+") as table:
            table.alter_field(0, "NAME", "C", 3)
            assert [table.read_string(i, 0) for i in range(3)] == ["Ali", "Bob", "Car"]
            assert table.read_integer(2, 1) == 7
            assert _file_size_matches(people, table)

    def test_narrow_number_keeps_right_bytes(self, tmp_path):
        """Test that a right-aligned number keeps its digits when narrowed."""
        path = tmp_path / "t.dbf"
        with DbfTable.create(path) as table:
            table.add_field("N", "N", 6)
            table.add_field("TAIL", "C", 2)
            table.write_integer(0, 0, 42)
            table.write_string(0, 1, "zz")
            table.write_null(1, 0)

        with DbfTable.open(path, "rb+") as table:
            table.alter_field(0, "N", "N", 3)
            assert table.read_tuple(0) == b"  42zz"
            assert table.read_tuple(1)[1:4] == b"***"
            assert table.read_integer(0, 0) == 42

    def test_narrow_then_widen_number(self, people):
        """Test that numbers which fit survive narrowing and widening back."""
        before = people.read_bytes()
        with DbfTable.open(people, "rb+") as table:
            table.alter_field(1, "AGE", "N", 2)
            assert [table.read_integer(i, 1) for i in (0, 2)] == [30, 7]
            table.alter_field(1, "AGE", "N", 3)
            assert [table.read_integer(i, 1) for i in (0, 2)] == [30, 7]
            assert table.is_null(1, 1)
            assert _file_size_matches(people, table)

        assert people.read_bytes()[32:] == before[32:]

    def test_retype_same_width(self, people):
        """Test a type change at equal width refills NULLs with the new type."""
        with DbfTable.open(people, "rb+") as table:
            table.alter_field(1, "AGE", "C", 3)
            assert table.native_field_type(1) == "C"
            assert table.read_string(0, 1) == "30"
            assert table.read_tuple(1)[11:14] == b"   "

    def test_decimals_change(self, tmp_path):
        """Test changing decimals only rewrites the header."""
        path = tmp_path / "t.dbf"
        with DbfTable.create(path) as table:
            table.add_field("PRICE", "N", 8, 2)
            table.write_double(0, 0, 1.25)

        with DbfTable.open(path, "rb+") as table:
            table.alter_field(0, "PRICE", "N", 8, 3)
            assert table.field_info(0).decimals == 3
            assert table.read_double(0, 0) == pytest.approx(1.25)

    def test_alter_limits(self, people):
        """Test invalid alterations."""
        with DbfTable.open(people, "rb+") as table:
            with pytest.raises(InvalidArgument):
                table.alter_field(5, "X", "C", 5)
            with pytest.raises(InvalidArgument):
                table.alter_field(0, "X", "C", 0)
            with pytest.raises(ResourceLimitExceeded):
                table.alter_field(0, "X", "C", 300)
            assert table.field_info(0) == (FieldType.STRING, "NAME", 10, 0)

    def test_cache_invalidated(self, people):
        """Test that a cached record is reloaded after a schema change."""
        with DbfTable.open(people, "rb+") as table:
            assert table.read_string(0, 0) == "Alice"
            table.alter_field(0, "NAME", "C", 12)
            assert table.cache.index == -1
            assert table.read_string(0, 0) == "Alice"
            assert table.write_string(0, 0, "Alicia")

        with DbfTable.open(people) as table:
            assert table.read_string(0, 0) == "Alicia"
            assert table.read_integer(0, 1) == 30
