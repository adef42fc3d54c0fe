import io
import json
import os
import tempfile
from contextlib import redirect_stderr, redirect_stdout
from unittest import mock

from django.test import SimpleTestCase

import import_prize_csv
from prize.exceptions import PrizeValidationError
from prize.models import prize_from_row, prize_to_row
from prize.tests.fakes import InMemoryRedis, make_prize

HEADER = "id,name,imageUrl,stock,totalStock,description,order,createdAt\n"


class RowCodecTests(SimpleTestCase):
    def test_parses_row_and_applies_stock_rules(self):
        prize = prize_from_row(["p1", "Mug", "/mug.png", "8", "5", "", "", "1700"])

        self.assertEqual(prize.stock, 5)
        self.assertEqual(prize.total_stock, 5)
        self.assertEqual(prize.order, 1700)
        self.assertIsNone(prize.description)

    def test_missing_total_defaults_to_stock(self):
        prize = prize_from_row(["p1", "Mug", "", "3", "", "Blue", "2", "1700"])

        self.assertEqual(prize.total_stock, 3)
        self.assertEqual(prize.description, "Blue")
        self.assertEqual(prize.order, 2)

    def test_rejects_short_or_non_numeric_rows(self):
        with self.assertRaises(PrizeValidationError):
            prize_from_row(["p1", "Mug"])
        with self.assertRaises(PrizeValidationError):
            prize_from_row(["p1", "Mug", "", "lots", "", "", "", ""])
        with self.assertRaises(PrizeValidationError):
            prize_from_row(["", "Mug", "", "1", "", "", "", ""])

    def test_row_layout_matches_columns(self):
        row = prize_to_row(make_prize("p1", 2, order=3, description="Gold"))

        self.assertEqual(row, ["p1", "Prize p1", "/images/p1.png", 2, 2, "Gold", 3, 1_700_000_000_000])


class ImportCommandTests(SimpleTestCase):
    def setUp(self):
        handle = tempfile.NamedTemporaryFile("w", suffix=".csv", delete=False, encoding="utf-8")
        handle.write(HEADER)
        handle.write("p1,Mug,/mug.png,3,5,,1,1700\n")
        handle.write("p2,,/x.png,1,1,,2,1700\n")
        handle.write("p1,Duplicate,/d.png,1,1,,3,1700\n")
        handle.write("p3,Pen,,2,,Blue,,\n")
        handle.close()
        self.csv_path = handle.name
        self.addCleanup(os.remove, self.csv_path)

    def run_main(self, *args):
        out, err = io.StringIO(), io.StringIO()
        with redirect_stdout(out), redirect_stderr(err):
            code = import_prize_csv.main(["--csv-path", self.csv_path, *args])
        return code, out.getvalue(), err.getvalue()

    def test_dry_run_parses_valid_rows(self):
        code, out, err = self.run_main("--dry-run")

        self.assertEqual(code, 0)
        self.assertIn("parsed 2 rows", out)
        self.assertIn("duplicate id p1", err)

    def test_import_writes_local_collection(self):
        redis_client = InMemoryRedis()

        with mock.patch("prize.backends.redis_client", return_value=redis_client):
            code, out, _ = self.run_main()

        self.assertEqual(code, 0)
        stored = json.loads(redis_client.data["gacha:prizes"])
        self.assertEqual([p["id"] for p in stored], ["p1", "p3"])
        self.assertEqual(stored[1]["totalStock"], 2)

    def test_wrong_header_is_rejected(self):
        with open(self.csv_path, "w", encoding="utf-8") as handle:
            handle.write("id,name,stock\n1,Mug,3\n")

        code, _, err = self.run_main("--dry-run")

        self.assertEqual(code, 2)
        self.assertIn("CSV header must exactly match", err)

    def test_missing_file(self):
        code, _, err = self.run_main("--csv-path", "/nonexistent/prizes.csv")

        self.assertEqual(code, 2)
        self.assertIn("CSV file not found", err)
