from django.test import SimpleTestCase

from prize.exceptions import PrizeValidationError
from prize.models import AddPrizeRequest, Prize, UpdatePrizeRequest


class RequestParsingTests(SimpleTestCase):
    def test_whole_float_stock_is_accepted(self):
        request = AddPrizeRequest.from_payload({"name": "Mug", "stock": 3.0, "totalStock": 4.0})

        self.assertEqual(request.stock, 3)
        self.assertEqual(request.total_stock, 4)

    def test_fractional_stock_is_rejected(self):
        with self.assertRaises(PrizeValidationError):
            AddPrizeRequest.from_payload({"name": "Mug", "stock": 2.9})
        with self.assertRaises(PrizeValidationError):
            AddPrizeRequest.from_payload({"name": "Mug", "stock": "2.5"})
        with self.assertRaises(PrizeValidationError):
            UpdatePrizeRequest.from_payload({"totalStock": 0.5}, "a")

    def test_boolean_stock_is_rejected(self):
        with self.assertRaises(PrizeValidationError):
            UpdatePrizeRequest.from_payload({"stock": True}, "a")


class PrizePayloadTests(SimpleTestCase):
    def test_missing_image_url_is_kept_missing(self):
        prize = Prize.from_payload({"id": "a", "name": "A", "stock": 1, "createdAt": 1})

        self.assertIsNone(prize.image_url)
