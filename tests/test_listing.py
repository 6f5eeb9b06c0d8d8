import uuid
from datetime import date

from file_gateway.services.listing import ListingEngine, ListingQuery, matches, sort_files
from file_gateway.services.resolver import DirectResolver, EmbeddedResolver
from tests.consts import FILE_ID
from tests.fakes import FakeStorage, at, record

OTHER_ID = "6fa459ea-ee8a-3ca4-894e-db77e160355e"


def direct_engine(records, metadata=None):
    storage = FakeStorage(records, metadata)
    return ListingEngine(storage, DirectResolver("bucket")), storage


def keys(page):
    return [f.key for f in page.files]


class TestSorting:
    def test_last_modified_desc(self):
        resolver = DirectResolver("bucket")
        files = [resolver.resolve(record(k, at(d)), "bucket") for k, d in [("t1", 1), ("t3", 3), ("t2", 2)]]
        assert [f.key for f in sort_files(files)] == ["t3", "t2", "t1"]

    def test_ties_keep_backend_order_in_both_directions(self):
        resolver = DirectResolver("bucket")
        files = [resolver.resolve(record(k, at(1)), "bucket") for k in ["a", "b", "c"]]
        assert [f.key for f in sort_files(files, "lastModified", "desc")] == ["a", "b", "c"]
        assert [f.key for f in sort_files(files, "lastModified", "asc")] == ["a", "b", "c"]

    def test_size_ascending(self):
        engine, _ = direct_engine([record("big", at(1), size=30), record("small", at(2), size=10)])
        page = engine.list_page("bucket", ListingQuery(sort_by="size", sort_order="asc"))
        assert keys(page) == ["small", "big"]

    def test_filename_sort_uses_metadata_and_ignores_case(self):
        engine, _ = direct_engine(
            [record("k1", at(1)), record("k2", at(2))],
            metadata={"k1": {"filename": "b.txt"}, "k2": {"filename": "A.txt"}},
        )
        page = engine.list_page("bucket", ListingQuery(sort_by="filename", sort_order="asc"))
        assert [f.filename for f in page.files] == ["A.txt", "b.txt"]


class TestPagination:
    records = [
        record("k0", at(1)),
        record("k1", at(5)),
        record("k2", at(3)),
        record("k3", at(2)),
        record("k4", at(4)),
    ]

    def test_marker_chain_delivers_every_record_once(self):
        engine, _ = direct_engine(self.records)
        seen = []
        marker = ""
        pages = 0
        while True:
            page = engine.list_page("bucket", ListingQuery(limit=2, marker=marker))
            pages += 1
            seen.extend(keys(page))
            assert page.has_more == (page.next_marker is not None)
            if not page.has_more:
                break
            marker = page.next_marker
        assert sorted(seen) == ["k0", "k1", "k2", "k3", "k4"]
        assert len(seen) == len(set(seen))
        assert pages == 3

    def test_first_page_is_sorted_and_marker_is_furthest_record(self):
        engine, _ = direct_engine(self.records)
        page = engine.list_page("bucket", ListingQuery(limit=2))
        assert keys(page) == ["k1", "k0"]
        assert page.next_marker == "k1"
        assert page.total_found == 2

    def test_short_page_ends_listing(self):
        engine, _ = direct_engine(self.records)
        page = engine.list_page("bucket", ListingQuery(limit=10))
        assert len(page.files) == 5
        assert page.has_more is False
        assert page.next_marker is None

    def test_stale_marker_gives_empty_page(self):
        engine, _ = direct_engine(self.records)
        page = engine.list_page("bucket", ListingQuery(limit=2, marker="deleted-key"))
        assert page.files == []
        assert page.has_more is False
        assert page.next_marker is None
        assert page.total_found == 0

    def test_marker_on_last_record_gives_empty_page(self):
        engine, _ = direct_engine(self.records)
        page = engine.list_page("bucket", ListingQuery(limit=2, marker="k4"))
        assert page.files == []
        assert page.has_more is False

    def test_marker_may_be_a_file_id(self):
        records = [record(f"docs/{FILE_ID}-a.pdf", at(1)), record(f"docs/{OTHER_ID}-b.pdf", at(2))]
        engine = ListingEngine(FakeStorage(records), EmbeddedResolver("bucket", "uploads"))
        page = engine.list_page("bucket", ListingQuery(limit=5, marker=FILE_ID))
        assert [f.file_id for f in page.files] == [OTHER_ID]

    def test_stream_is_read_only_up_to_the_window(self):
        engine, storage = direct_engine(self.records)
        engine.list_page("bucket", ListingQuery(limit=2))
        assert storage.yielded == 2
        assert storage.described == ["k0", "k1"]

    def test_prefix_narrows_the_stream(self):
        engine, _ = direct_engine([record("a/1", at(1)), record("b/1", at(2)), record("a/2", at(3))])
        page = engine.list_page("bucket", ListingQuery(prefix="a/"))
        assert keys(page) == ["a/2", "a/1"]


class TestFiltering:
    def test_keyword_overfetches_twice_the_limit(self):
        records = [record(k, at(i + 1)) for i, k in enumerate(["a-match", "b", "c-match", "d", "e-match", "f-match"])]
        engine, storage = direct_engine(records)
        page = engine.list_page("bucket", ListingQuery(limit=2, keyword="MATCH"))
        assert storage.yielded == 4
        assert keys(page) == ["c-match", "a-match"]
        assert page.has_more is True
        assert page.next_marker == "c-match"

    def test_keyword_matches_filename_from_metadata(self):
        engine, _ = direct_engine(
            [record("k1", at(1)), record("k2", at(2))],
            metadata={"k1": {"filename": "Holiday.JPG"}, "k2": {"filename": "notes.txt"}},
        )
        page = engine.list_page("bucket", ListingQuery(keyword="holiday"))
        assert keys(page) == ["k1"]

    def test_single_day_range_includes_both_boundaries(self):
        records = [
            record("before", at(31, 23, 59, 59, 999000, month=12, year=2023)),
            record("start", at(1, 0, 0, 0)),
            record("end", at(1, 23, 59, 59, 999000)),
            record("after", at(2, 0, 0, 0)),
        ]
        engine, _ = direct_engine(records)
        query = ListingQuery(start_date=date(2024, 1, 1), end_date=date(2024, 1, 1), sort_order="asc")
        page = engine.list_page("bucket", query)
        assert keys(page) == ["start", "end"]
        assert page.total_found == 2

    def test_open_ended_ranges(self):
        records = [record("old", at(1)), record("new", at(20))]
        engine, _ = direct_engine(records)
        assert keys(engine.list_page("bucket", ListingQuery(start_date=date(2024, 1, 10)))) == ["new"]
        assert keys(engine.list_page("bucket", ListingQuery(end_date=date(2024, 1, 10)))) == ["old"]

    def test_predicates_are_combined_with_and(self):
        records = [record("report-old", at(1)), record("report-new", at(20)), record("photo-new", at(20))]
        engine, _ = direct_engine(records)
        page = engine.list_page("bucket", ListingQuery(keyword="report", start_date=date(2024, 1, 10)))
        assert keys(page) == ["report-new"]

    def test_filter_is_deterministic(self):
        resolver = DirectResolver("bucket")
        files = [resolver.resolve(record(k, at(d)), "bucket") for k, d in [("x1", 1), ("y", 2), ("x2", 3)]]
        query = ListingQuery(keyword="x", start_date=date(2024, 1, 2))
        once = [f for f in files if matches(f, query, resolver)]
        twice = [f for f in once if matches(f, query, resolver)]
        assert once == twice == [files[2]]

    def test_malformed_keys_are_left_out(self):
        records = [record("stray.txt", at(1)), record(f"docs/{FILE_ID}-a.pdf", at(2))]
        engine = ListingEngine(FakeStorage(records), EmbeddedResolver("bucket", "uploads"))
        page = engine.list_page("bucket", ListingQuery())
        assert [f.file_id for f in page.files] == [FILE_ID]
        assert page.total_found == 1

    def test_malformed_key_does_not_end_pagination(self):
        ids = [str(uuid.uuid4()) for _ in range(5)]
        records = [record("stray.txt", at(1))]
        records += [record(f"docs/{file_id}-f{i}.pdf", at(i + 2)) for i, file_id in enumerate(ids)]
        engine = ListingEngine(FakeStorage(records), EmbeddedResolver("bucket", "uploads"))

        seen = []
        marker = ""
        while True:
            page = engine.list_page("bucket", ListingQuery(limit=2, marker=marker))
            seen.extend(f.file_id for f in page.files)
            if not page.has_more:
                break
            marker = page.next_marker

        assert sorted(seen) == sorted(ids)
        assert len(seen) == len(set(seen))

    def test_malformed_keys_do_not_count_toward_the_window(self):
        records = [record("stray.txt", at(1)), record("other-stray", at(2))]
        records += [record(f"docs/{FILE_ID}-a.pdf", at(3)), record(f"docs/{OTHER_ID}-b.pdf", at(4))]
        engine = ListingEngine(FakeStorage(records), EmbeddedResolver("bucket", "uploads"))
        page = engine.list_page("bucket", ListingQuery(limit=2))
        assert [f.file_id for f in page.files] == [OTHER_ID, FILE_ID]
        assert page.has_more is True
