#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
测试 FastAPI 聊天接口（注入脚本化的 LLM，不访问外部服务）。
"""
from __future__ import annotations

import sys
import unittest
from pathlib import Path

_ROOT = Path(__file__).resolve().parent.parent
_TESTS = Path(__file__).resolve().parent
for _p in (_ROOT, _TESTS):
    if str(_p) not in sys.path:
        sys.path.insert(0, str(_p))

from fastapi.testclient import TestClient

import api
from assistant import GeminiService
from core.config import Settings

from fakes import FakeLLM, RecordingSleep


class TestChatApi(unittest.TestCase):
    def setUp(self) -> None:
        self.llm = FakeLLM()
        api._service = GeminiService(llm=self.llm, settings=Settings(), sleep=RecordingSleep())
        api._sessions.clear()
        self.client = TestClient(api.app)

    def tearDown(self) -> None:
        api._sessions.clear()
        api._service = None

    def test_health(self) -> None:
        resp = self.client.get("/api/health")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"status": "ok"})

    def test_chat_creates_session_and_replies(self) -> None:
        self.llm.script = ["Hello there!"]
        resp = self.client.post("/api/chat", json={"message": "hi", "route": "/browse"})
        self.assertEqual(resp.status_code, 200)
        data = resp.json()
        self.assertEqual(data["reply"]["text"], "Hello there!")
        self.assertEqual(data["route"], "/browse")
        self.assertFalse(data["is_typing"])

        session = self.client.get(f"/api/chat/{data['session_id']}").json()
        self.assertEqual(len(session["messages"]), 3)

    def test_blank_message_has_no_reply(self) -> None:
        data = self.client.post("/api/chat", json={"message": "   "}).json()
        self.assertIsNone(data["reply"])
        self.assertEqual(self.llm.calls, [])

    def test_quick_action_navigate(self) -> None:
        data = self.client.post("/api/chat", json={"message": "hi"}).json()
        resp = self.client.post("/api/chat/quick-action", json={
            "session_id": data["session_id"],
            "action": {"id": "browse", "label": "Find Restaurants", "action": "navigate", "data": "/browse"},
        })
        self.assertEqual(resp.json()["route"], "/browse")
        self.assertIsNone(resp.json()["reply"])

    def test_clear_and_missing_session(self) -> None:
        data = self.client.post("/api/chat", json={"message": "hi"}).json()
        cleared = self.client.delete(f"/api/chat/{data['session_id']}").json()
        self.assertEqual(len(cleared["messages"]), 1)
        self.assertEqual(self.client.get("/api/chat/unknown").status_code, 404)

    def test_least_recently_used_session_evicted(self) -> None:
        saved = api.MAX_SESSIONS
        api.MAX_SESSIONS = 2
        try:
            first = self.client.post("/api/chat", json={"message": "a"}).json()["session_id"]
            second = self.client.post("/api/chat", json={"message": "b"}).json()["session_id"]
            self.client.post("/api/chat", json={"session_id": first, "message": "again"})
            third = self.client.post("/api/chat", json={"message": "c"}).json()["session_id"]
        finally:
            api.MAX_SESSIONS = saved

        self.assertEqual(list(api._sessions), [first, third])
        self.assertEqual(self.client.get(f"/api/chat/{second}").status_code, 404)
        self.assertEqual(api._service.get_conversation_history(second), [])
        self.assertEqual(len(api._service.get_conversation_history(first)), 4)

    def test_status(self) -> None:
        self.client.post("/api/chat", json={"message": "hi"})
        data = self.client.get("/api/chat-status").json()
        self.assertEqual(data["rate_limit"]["requests_this_minute"], 1)
        self.assertEqual(data["circuit_breaker"]["state"], "closed")


if __name__ == "__main__":
    unittest.main()
