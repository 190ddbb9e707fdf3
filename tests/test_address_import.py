import gzip
import logging
import tempfile
import unittest
from pathlib import Path

from support import FakeIndexClient

from geoimport.documents import Addr
from geoimport.index.client import IndexVisibility
from geoimport.index.settings import IndexSettings
from geoimport.index.workflows import IngestError
from geoimport.ingest.converters import BanoRecord, ConversionError, OpenAddressesRecord, bano_into_addr, openaddresses_into_addr
from geoimport.ingest.workflows import import_addresses, valid_addresses

BANO_ROWS = {
    "a.csv": (
        "a1,1,Rue de la Paix,75002,Paris,OSM,48.8690,2.3310\n"
        "a2,2,Rue de la Paix,75002,Paris,OSM,48.8691,2.3311\n"
    ),
    "b.csv": (
        "b1,10,Quai de la Fosse,44000,Nantes,OSM,47.2100,-1.5600\n"
        "b2,11,,44000,Nantes,OSM,47.2101,-1.5601\n"
        "b3,,Quai de la Fosse,44000,Nantes,OSM,47.2102,-1.5602\n"
    ),
    "c.csv": (
        "c1,5,Cours Victor Hugo,33000,Bordeaux,CAD,44.8350,-0.5720\n"
        "c2,this row is broken\n"
        "c3,7,Cours Victor Hugo,33000,Bordeaux,CAD,44.8351,-0.5721\n"
    ),
}

EXPECTED_IDS = {"addr:a1", "addr:a2", "addr:b1", "addr:c1", "addr:c3"}


class AddressImportTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.tmp = Path(self._tmp.name)
        self.logger = logging.getLogger("test_address_import")
        self.logger.addHandler(logging.NullHandler())
        self.logger.propagate = False

    def _write(self, name: str, text: str, *, compress: bool = False) -> Path:
        path = self.tmp / name
        data = text.encode("utf-8")
        path.write_bytes(gzip.compress(data) if compress else data)
        return path

    def _bano_files(self, *, compress: bool = False) -> list[Path]:
        suffix = ".gz" if compress else ""
        return [self._write(name + suffix, text, compress=compress) for name, text in BANO_ROWS.items()]

    def _import(self, client: FakeIndexClient, files: list[Path], **overrides) -> int:
        options = dict(
            dataset="fr",
            index_settings=IndexSettings(),
            has_headers=False,
            with_gzip=False,
            nb_threads=3,
            files=files,
            record_type=BanoRecord,
            into_addr=bano_into_addr,
            logger=self.logger,
        )
        options.update(overrides)
        return import_addresses(client, **options)

    def _served_ids(self, client: FakeIndexClient) -> set[str]:
        return {addr.id for addr in client.served("addr", "fr")}

    def test_imports_and_publishes_valid_addresses(self) -> None:
        client = FakeIndexClient()
        nb = self._import(client, self._bano_files())

        self.assertEqual(len(EXPECTED_IDS), nb)
        self.assertEqual(EXPECTED_IDS, self._served_ids(client))
        self.assertEqual(["create", "bulk", "publish"], client.events)
        self.assertIn(("addr", "fr", IndexVisibility.PUBLIC), client.published)

    def test_addresses_without_street_name_are_not_indexed(self) -> None:
        client = FakeIndexClient()
        self._import(client, self._bano_files())

        self.assertTrue(all(addr.street_name for addr in client.served("addr", "fr")))
        self.assertNotIn("addr:b2", self._served_ids(client))

    def test_gzip_files(self) -> None:
        client = FakeIndexClient()
        nb = self._import(client, self._bano_files(compress=True), with_gzip=True)

        self.assertEqual(len(EXPECTED_IDS), nb)
        self.assertEqual(EXPECTED_IDS, self._served_ids(client))

    def test_unreadable_file_does_not_change_other_files_output(self) -> None:
        files = self._bano_files()
        reference = FakeIndexClient()
        self._import(reference, files)

        garbage = self._write("garbage.csv.gz", "not gzip at all")
        with_broken_files = [files[0], self.tmp / "missing.csv", files[1], garbage, files[2]]

        plain_client = FakeIndexClient()
        self._import(plain_client, with_broken_files)
        self.assertEqual(self._served_ids(reference), self._served_ids(plain_client))

    def test_unreadable_gzip_file_is_skipped(self) -> None:
        files = self._bano_files(compress=True)
        garbage = self._write("garbage.csv.gz", "not gzip at all")

        client = FakeIndexClient()
        nb = self._import(client, files + [garbage], with_gzip=True)

        self.assertEqual(len(EXPECTED_IDS), nb)
        self.assertEqual(EXPECTED_IDS, self._served_ids(client))

    def test_openaddresses_with_header(self) -> None:
        path = self._write(
            "oa.csv",
            "LON,LAT,NUMBER,STREET,UNIT,CITY,DISTRICT,REGION,POSTCODE,ID,HASH\n"
            "-73.9857,40.7484,350,5th Avenue,,New York,,NY,10118,,h1\n"
            "-73.9858,40.7485,352,,,New York,,NY,10118,,h2\n",
        )
        client = FakeIndexClient()
        nb = self._import(
            client,
            [path],
            has_headers=True,
            record_type=OpenAddressesRecord,
            into_addr=openaddresses_into_addr,
        )

        self.assertEqual(1, nb)
        self.assertEqual({"addr:oa:h1"}, self._served_ids(client))

    def test_index_creation_failure_is_fatal_before_reading_files(self) -> None:
        opened = []

        def into_addr(record: BanoRecord) -> Addr:
            opened.append(record)
            return bano_into_addr(record)

        client = FakeIndexClient(fail_on="create")
        with self.assertRaises(IngestError) as ctx:
            self._import(client, self._bano_files(), into_addr=into_addr)

        self.assertIn("making index", str(ctx.exception))
        self.assertEqual([], opened)
        self.assertEqual(["create"], client.events)

    def test_bulk_failure_keeps_previous_index_published(self) -> None:
        client = FakeIndexClient()
        self._import(client, self._bano_files()[:1])
        previous = list(client.served("addr", "fr"))

        client.fail_on = "bulk"
        with self.assertRaises(IngestError) as ctx:
            self._import(client, self._bano_files())

        self.assertIn("bulk insert", str(ctx.exception))
        self.assertEqual(previous, client.served("addr", "fr"))
        self.assertEqual("publish", client.events[2])
        self.assertEqual(["create", "bulk"], client.events[3:])

    def test_publish_failure_is_fatal(self) -> None:
        client = FakeIndexClient(fail_on="publish")
        with self.assertRaises(IngestError) as ctx:
            self._import(client, self._bano_files())

        self.assertIn("publishing", str(ctx.exception))
        self.assertIsNone(client.served("addr", "fr"))


class ValidAddressesTests(unittest.TestCase):
    def test_drops_errors_and_empty_streets(self) -> None:
        logger = logging.getLogger("test_valid_addresses")
        good = Addr(id="addr:1", house_number="1", street_name="Rue A", label="1 Rue A", coord=(0.0, 0.0))
        empty = Addr(id="addr:2", house_number="2", street_name="", label="2", coord=(0.0, 0.0))

        with self.assertLogs(logger, level="WARNING") as logs:
            result = list(valid_addresses([good, ConversionError("bad lat"), empty], logger))

        self.assertEqual([good], result)
        self.assertEqual(2, len(logs.records))
        self.assertIn("addr:2 has no street name", logs.output[1])


if __name__ == "__main__":
    unittest.main()
