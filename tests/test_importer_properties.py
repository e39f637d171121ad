"""
Property-based tests for the CSV importer.
"""

from hypothesis import given, settings
from hypothesis import strategies as st

from domain_acquirer.config import AcquisitionConfig
from domain_acquirer.enums import DomainStatus
from domain_acquirer.exceptions import ValidationError
from domain_acquirer.importer import CsvTable, DomainImporter, parse_csv, resolve_column
from domain_acquirer.normalizer import is_import_worthy, normalize_org_name
from domain_acquirer.record_store import InMemoryRecordStore

from fakes import quiet_logger


org_names = st.text(alphabet="abcdefghijklmnopqrstuvwxyzÄÖÜäöüß -", min_size=0, max_size=20)


class TestParseCsv:
    """CSV parsing."""

    def test_quoted_commas_are_kept(self) -> None:
        table = parse_csv('Name,Ort\n"Schule, Nord",Berlin\nRealschule,"Köln"\n')
        assert table.headers == ["Name", "Ort"]
        assert table.rows == [["Schule, Nord", "Berlin"], ["Realschule", "Köln"]]

    def test_blank_lines_and_whitespace(self) -> None:
        table = parse_csv("\n  Name , Ort \n\n  Gymnasium Mitte , Hamburg\n   \n")
        assert table.headers == ["Name", "Ort"]
        assert table.rows == [["Gymnasium Mitte", "Hamburg"]]

    def test_unbalanced_quote_stays_on_its_line(self) -> None:
        table = parse_csv('name,city\n"Schule A,Berlin\nSchule B,Hamburg\nSchule C,Koeln\n')

        assert table.rows == [["Schule A,Berlin"], ["Schule B", "Hamburg"], ["Schule C", "Koeln"]]

    def test_empty_text(self) -> None:
        assert parse_csv("") == CsvTable()
        assert parse_csv("\n\n") == CsvTable()

    def test_resolve_column_by_name_and_index(self) -> None:
        headers = ["Name", "Ort", "3"]
        assert resolve_column(headers, "Ort") == 1
        assert resolve_column(headers, 0) == 0
        assert resolve_column(headers, "1") == 1
        assert resolve_column(headers, "3") == 2

        for column in ("Stadt", 5, "-1"):
            try:
                resolve_column(headers, column)
                assert False, f"Expected ValidationError for {column!r}"
            except ValidationError as e:
                assert e.code == "unknown_column"


class TestDomainImporter:
    """Import of a name column into pending records."""

    def test_skips_are_counted(self) -> None:
        store = InMemoryRecordStore()
        store.create("vorhanden.de")
        importer = DomainImporter(store, logger=quiet_logger())
        text = "\n".join([
            "Schule,Ort",
            "Grundschule Müller,Berlin",
            "grundschule müller,Berlin",
            ",Köln",
            "!!!,Bonn",
            "Vorhanden,Bonn",
            "Example.DE,Essen",
        ])

        summary = importer.import_text(text, "Schule", email_forward_to="office@example.org")

        assert summary.created == 2
        assert summary.domains == ["grundschulemueller.de", "example.de"]
        assert summary.skipped_duplicate == 2
        assert summary.skipped_empty == 1
        assert summary.skipped_short == 1

        records = {r.original_domain: r for r in store.list_all()}
        assert records["example.de"].status == DomainStatus.PENDING
        assert records["example.de"].email_forward_to == "office@example.org"

    def test_unbalanced_quote_does_not_swallow_rows(self) -> None:
        store = InMemoryRecordStore()
        text = 'name,city\n"Schule A,Berlin\nSchule B,Hamburg\nSchule C,Koeln\n'

        summary = DomainImporter(store).import_text(text, "name")

        assert summary.domains == ["schuleaberlin.de", "schuleb.de", "schulec.de"]
        assert summary.created == 3

    def test_short_rows_count_as_empty(self) -> None:
        store = InMemoryRecordStore()
        summary = DomainImporter(store).import_text("A,B\nnur-a\n", 1)
        assert summary.skipped_empty == 1
        assert summary.created == 0

    def test_unknown_column_creates_nothing(self) -> None:
        store = InMemoryRecordStore()
        try:
            DomainImporter(store).import_text("Name\nSchule\n", "Schule")
            assert False, "Expected ValidationError"
        except ValidationError:
            pass
        assert store.list_all() == []

    def test_minimum_length_is_configurable(self) -> None:
        store = InMemoryRecordStore()
        importer = DomainImporter(store, config=AcquisitionConfig(min_domain_length=8))
        summary = importer.import_text("Name\nab\nabcdef\n", "Name")
        assert summary.domains == ["abcdef.de"]
        assert summary.skipped_short == 1

    @given(names=st.lists(org_names, max_size=15))
    @settings(max_examples=100)
    def test_created_records_are_distinct_worthy_domains(self, names: list[str]) -> None:
        store = InMemoryRecordStore()
        table = CsvTable(headers=["Name"], rows=[[n] for n in names])

        summary = DomainImporter(store).import_table(table, "Name")

        expected = []
        for name in names:
            if not name.strip():
                continue
            domain = normalize_org_name(name)
            if is_import_worthy(domain) and domain not in expected:
                expected.append(domain)

        assert summary.domains == expected
        assert summary.created == len(expected)
        assert sorted(r.original_domain for r in store.list_all()) == sorted(expected)
        assert (
            summary.created + summary.skipped_duplicate + summary.skipped_short + summary.skipped_empty
            == len(names)
        )

    @given(names=st.lists(org_names, max_size=10))
    @settings(max_examples=50)
    def test_second_import_creates_nothing(self, names: list[str]) -> None:
        store = InMemoryRecordStore()
        table = CsvTable(headers=["Name"], rows=[[n] for n in names])
        importer = DomainImporter(store)
        importer.import_table(table, 0)

        again = importer.import_table(table, 0)

        assert again.created == 0
