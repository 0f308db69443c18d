import sys
import unittest
from pathlib import Path
from unittest.mock import patch

from fastapi.testclient import TestClient


# Ensure `backend/` and the repository root are on sys.path so `import app...` and `import engine...` work
REPO_ROOT = Path(__file__).resolve().parents[2]
BACKEND_DIR = REPO_ROOT / "backend"
sys.path.insert(0, str(BACKEND_DIR))
sys.path.insert(0, str(REPO_ROOT))

from app.main import app, configure_services  # noqa: E402
from app.services.phrasing_service import (  # noqa: E402
    RECOMMENDATION_SUGGESTIONS,
    STEP_RESPONSES,
    PhrasingChain,
)
from engine.models import Step  # noqa: E402


# One message per step; the first two both collect income
CONVERSATION = [
    ("I earn 80000 rupees a month", "income"),
    ("Still around 80000 rupees", "creditScore"),
    ("My score is 750", "spending"),
    ("dining 5000 and online 10000", "preferences"),
    ("I prefer cashback", "complete"),
]


class ChatApiTests(unittest.TestCase):
    def setUp(self):
        configure_services(app, phrasing=PhrasingChain([]))
        self._client_cm = TestClient(app)
        self.client = self._client_cm.__enter__()

    def tearDown(self):
        self._client_cm.__exit__(None, None, None)

    def _start(self):
        res = self.client.post("/api/v1/chat/start")
        self.assertEqual(res.status_code, 201, res.text)
        return res.json()

    def test_start_session_greets(self):
        body = self._start()

        self.assertTrue(body["sessionId"])
        self.assertEqual(body["message"], STEP_RESPONSES[Step.GREETING])
        self.assertEqual(body["session"], {"currentStep": "greeting", "isProfileComplete": False})
        self.assertIn("₹50,000 per month", body["suggestions"])

        session = self.client.get(f"/api/v1/chat/{body['sessionId']}").json()["session"]
        self.assertEqual(len(session["chatHistory"]), 1)
        self.assertEqual(session["chatHistory"][0]["role"], "assistant")
        self.assertEqual(session["questionsAsked"], ["greeting"])

    def test_full_conversation_produces_recommendations_once(self):
        session_id = self._start()["sessionId"]

        for text, expected_step in CONVERSATION:
            res = self.client.post(f"/api/v1/chat/{session_id}/message", json={"message": text})
            self.assertEqual(res.status_code, 200, res.text)
            body = res.json()
            self.assertEqual(body["session"]["currentStep"], expected_step, text)

        self.assertTrue(body["session"]["isProfileComplete"])
        self.assertEqual(body["suggestions"], RECOMMENDATION_SUGGESTIONS)
        self.assertTrue(1 <= len(body["recommendations"]) <= 5)
        for card in body["recommendations"]:
            self.assertEqual(card["rewardType"], "Cashback")
        self.assertIn(body["recommendations"][0]["name"], body["message"])

        first_ids = [card["id"] for card in body["recommendations"]]

        # Later messages return the cached list without recomputing it
        with patch.object(app.state.conversation_service.engine, "generate_recommendations") as mock_generate:
            res = self.client.post(f"/api/v1/chat/{session_id}/message", json={"message": "thanks!"})
        body = res.json()
        mock_generate.assert_not_called()
        self.assertEqual([card["id"] for card in body["recommendations"]], first_ids)
        self.assertEqual(body["message"], STEP_RESPONSES[Step.COMPLETE])
        self.assertEqual(body["session"]["currentStep"], "complete")

        session = self.client.get(f"/api/v1/chat/{session_id}").json()["session"]
        self.assertEqual(session["userProfile"]["monthlyIncome"], 80000)
        self.assertEqual(session["userProfile"]["creditScore"], 750)
        self.assertEqual(session["userProfile"]["spendingHabits"]["online"], 10000)
        self.assertEqual(session["userProfile"]["preferences"]["rewardType"], "Cashback")
        # greeting + 6 user messages + 6 replies
        self.assertEqual(len(session["chatHistory"]), 13)
        self.assertEqual(session["chatHistory"][1]["role"], "user")
        self.assertEqual(session["chatHistory"][1]["text"], CONVERSATION[0][0])

    def test_unrecognized_answer_still_advances(self):
        session_id = self._start()["sessionId"]

        body = self.client.post(f"/api/v1/chat/{session_id}/message", json={"message": "hello!"}).json()

        self.assertEqual(body["session"]["currentStep"], "income")
        self.assertFalse(body["session"]["isProfileComplete"])
        self.assertEqual(body["provider"], "template")

    def test_empty_message_is_rejected(self):
        session_id = self._start()["sessionId"]

        for payload in ({"message": ""}, {"message": "   "}, {}):
            res = self.client.post(f"/api/v1/chat/{session_id}/message", json=payload)
            self.assertEqual(res.status_code, 400)
            self.assertEqual(res.json()["error"]["code"], "VALIDATION_ERROR")

    def test_message_to_unknown_session_creates_it(self):
        res = self.client.post("/api/v1/chat/brand-new/message", json={"message": "I earn 60k"})

        self.assertEqual(res.status_code, 200, res.text)
        session = self.client.get("/api/v1/chat/brand-new").json()["session"]
        self.assertEqual(session["userProfile"]["monthlyIncome"], 60000)

    def test_get_unknown_session_returns_404(self):
        res = self.client.get("/api/v1/chat/does-not-exist")

        self.assertEqual(res.status_code, 404)
        self.assertEqual(res.json()["error"]["code"], "NOT_FOUND")

    def test_reset_keeps_id_and_clears_state(self):
        session_id = self._start()["sessionId"]
        self.client.post(f"/api/v1/chat/{session_id}/message", json={"message": "I earn 90k"})

        res = self.client.post(f"/api/v1/chat/{session_id}/reset")

        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json()["sessionId"], session_id)
        session = self.client.get(f"/api/v1/chat/{session_id}").json()["session"]
        self.assertEqual(session["currentStep"], "greeting")
        self.assertIsNone(session["userProfile"]["monthlyIncome"])
        self.assertEqual(len(session["chatHistory"]), 1)

    def test_stats_overview(self):
        self._start()
        self._start()

        res = self.client.get("/api/v1/chat/stats/overview")

        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json(), {"totalSessions": 2, "activeInLastHour": 2, "completedProfiles": 0})

    def test_health(self):
        body = self.client.get("/health").json()

        self.assertEqual(body["status"], "OK")
        self.assertEqual(body["cards"], 20)
        self.assertEqual(body["phrasingProviders"], ["template"])


if __name__ == "__main__":
    unittest.main()
