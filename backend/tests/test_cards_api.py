import sys
import unittest
from pathlib import Path

from fastapi.testclient import TestClient


# Ensure `backend/` and the repository root are on sys.path so `import app...` and `import engine...` work
REPO_ROOT = Path(__file__).resolve().parents[2]
BACKEND_DIR = REPO_ROOT / "backend"
sys.path.insert(0, str(BACKEND_DIR))
sys.path.insert(0, str(REPO_ROOT))

from app.main import app, configure_services  # noqa: E402
from app.services.phrasing_service import PhrasingChain  # noqa: E402


class CardsApiTests(unittest.TestCase):
    def setUp(self):
        configure_services(app, phrasing=PhrasingChain([]))
        self._client_cm = TestClient(app)
        self.client = self._client_cm.__enter__()

    def tearDown(self):
        self._client_cm.__exit__(None, None, None)

    def test_list_cards(self):
        body = self.client.get("/api/v1/cards").json()

        self.assertEqual(body["count"], 20)
        self.assertEqual(body["data"][0]["id"], "hdfc-millennia")
        self.assertIn("rewardRate", body["data"][0])

    def test_get_card(self):
        res = self.client.get("/api/v1/cards/axis-ace")

        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json()["data"]["issuer"], "Axis Bank")

    def test_get_unknown_card(self):
        res = self.client.get("/api/v1/cards/no-such-card")

        self.assertEqual(res.status_code, 404)
        self.assertEqual(res.json()["error"]["code"], "NOT_FOUND")

    def test_search(self):
        body = self.client.get("/api/v1/cards/search", params={"q": "  hdfc "}).json()

        self.assertEqual(body["query"], "hdfc")
        self.assertEqual(body["count"], 4)
        self.assertTrue(all("HDFC" in card["name"] or card["issuer"] == "HDFC Bank" for card in body["data"]))

    def test_search_query_too_short(self):
        for params in ({"q": "a"}, {}):
            res = self.client.get("/api/v1/cards/search", params=params)
            self.assertEqual(res.status_code, 400)
            self.assertEqual(res.json()["error"]["code"], "VALIDATION_ERROR")

    def test_filter(self):
        res = self.client.get(
            "/api/v1/cards/filter",
            params={"rewardType": "cashback", "maxAnnualFee": 500},
        )

        self.assertEqual(res.status_code, 200, res.text)
        body = res.json()
        self.assertEqual(body["criteria"], {"rewardType": "cashback", "maxAnnualFee": 500})
        self.assertGreater(body["count"], 0)
        for card in body["data"]:
            self.assertEqual(card["rewardType"], "Cashback")
            self.assertLessEqual(card["annualFee"], 500)

    def test_filter_by_category_list_and_issuer(self):
        body = self.client.get(
            "/api/v1/cards/filter",
            params={"category": "Premium,Super Premium", "issuer": "hdfc bank"},
        ).json()

        self.assertEqual({card["id"] for card in body["data"]}, {"hdfc-regalia-gold", "hdfc-infinia"})

    def test_filter_without_criteria_returns_everything(self):
        self.assertEqual(self.client.get("/api/v1/cards/filter").json()["count"], 20)

    def test_filter_rejects_bad_values(self):
        for params in ({"rewardType": "miles"}, {"minIncome": -1}):
            res = self.client.get("/api/v1/cards/filter", params=params)
            self.assertEqual(res.status_code, 400)
            self.assertEqual(res.json()["error"]["code"], "VALIDATION_ERROR")

    def test_spending_category(self):
        body = self.client.get("/api/v1/cards/category/Fuel").json()

        self.assertEqual(body["category"], "fuel")
        self.assertGreater(body["count"], 0)
        self.assertTrue(all("fuel" in card["rewardRate"] for card in body["data"]))

    def test_invalid_spending_category(self):
        res = self.client.get("/api/v1/cards/category/crypto")

        self.assertEqual(res.status_code, 400)

    def test_compare(self):
        res = self.client.post("/api/v1/cards/compare", json={"cardIds": ["amazon-pay-icici", "hdfc-infinia"]})

        self.assertEqual(res.status_code, 200, res.text)
        comparison = res.json()["data"]["comparison"]
        self.assertEqual(comparison["fees"], {"lowest": 0, "highest": 12500, "free": 1})

    def test_compare_validation(self):
        too_few = self.client.post("/api/v1/cards/compare", json={"cardIds": ["axis-ace"]})
        too_many = self.client.post("/api/v1/cards/compare", json={"cardIds": ["a", "b", "c", "d", "e", "f"]})
        unknown = self.client.post("/api/v1/cards/compare", json={"cardIds": ["axis-ace", "nope"]})

        self.assertEqual(too_few.status_code, 400)
        self.assertEqual(too_many.status_code, 400)
        self.assertEqual(unknown.status_code, 404)
        self.assertEqual(unknown.json()["error"]["details"], {"missing": ["nope"]})

    def test_calculate_rewards(self):
        res = self.client.post(
            "/api/v1/cards/hdfc-millennia/calculate-rewards",
            json={"spendingPattern": {"online": 10000, "fuel": 5000}},
        )

        self.assertEqual(res.status_code, 200, res.text)
        calculation = res.json()["data"]["calculation"]
        # 5% of 10000 + 1% of 5000
        self.assertEqual(calculation["totalAnnualReward"], 550)
        self.assertEqual(calculation["annualFee"], 1000)
        self.assertEqual(calculation["netValue"], -450)
        self.assertEqual(set(calculation["breakdown"]), {"online", "fuel"})

    def test_calculate_rewards_validation(self):
        empty = self.client.post("/api/v1/cards/axis-ace/calculate-rewards", json={"spendingPattern": {}})
        negative = self.client.post(
            "/api/v1/cards/axis-ace/calculate-rewards", json={"spendingPattern": {"dining": -5}}
        )
        unknown = self.client.post("/api/v1/cards/nope/calculate-rewards", json={"spendingPattern": {"dining": 5}})

        self.assertEqual(empty.status_code, 400)
        self.assertEqual(negative.status_code, 400)
        self.assertEqual(unknown.status_code, 404)

    def test_stats(self):
        data = self.client.get("/api/v1/cards/stats").json()["data"]

        self.assertEqual(data["totalCards"], 20)
        self.assertEqual(sum(data["feeDistribution"].values()), 20)


if __name__ == "__main__":
    unittest.main()
