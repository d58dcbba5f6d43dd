from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient

from tutordesk.main import app

from conftest import auth_headers, register

client = TestClient(app)


def test_health_check():
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_setup_is_idempotent():
    first = client.post("/api/setup")
    second = client.post("/api/setup")
    assert first.status_code == 200
    assert second.status_code == 200
    assert second.json()["success"] is True
    assert "0 seed rows" in second.json()["message"]


class TestAuth:
    def test_first_user_becomes_superadmin(self):
        admin = register(client, "Admin", "admin@example.com", role="coach")
        student = register(client, "Ece", "ece@example.com")
        assert admin["user"]["role"] == "superadmin"
        assert student["user"]["role"] == "student"
        assert admin["token"]

    def test_new_users_join_announcements(self):
        admin = register(client, "Admin", "admin@example.com")
        student = register(client, "Ece", "ece@example.com")
        response = client.get("/api/conversations/conv-announcements", headers=auth_headers(admin["token"]))
        assert response.status_code == 200
        assert response.json()["participantIds"] == [admin["user"]["id"], student["user"]["id"]]

    def test_duplicate_email_is_rejected(self):
        register(client, "Admin", "admin@example.com")
        response = client.post("/api/register", json={
            "name": "Other", "email": "ADMIN@example.com", "password": "x"
        })
        assert response.status_code == 409
        assert response.json() == {"detail": "Email already exists"}

    def test_register_requires_fields(self):
        response = client.post("/api/register", json={"name": " ", "email": "a@b.c", "password": "x"})
        assert response.status_code == 400

    def test_login(self):
        register(client, "Admin", "admin@example.com", password="hunter2")
        response = client.post("/api/login", json={"email": "Admin@Example.com", "password": "hunter2"})
        assert response.status_code == 200
        assert response.json()["user"]["email"] == "admin@example.com"

        bad = client.post("/api/login", json={"email": "admin@example.com", "password": "wrong"})
        assert bad.status_code == 401
        assert bad.json() == {"detail": "Invalid credentials"}

    def test_invited_user_logs_in_with_invite_password(self):
        admin = register(client, "Admin", "admin@example.com")
        client.post("/api/users", headers=auth_headers(admin["token"]), json={
            "id": "invited-1", "name": "Invited", "email": "invited@example.com", "role": "student"
        })
        response = client.post("/api/login", json={"email": "invited@example.com", "password": "demo"})
        assert response.status_code == 200
        assert response.json()["user"]["id"] == "invited-1"

    def test_verify(self):
        admin = register(client, "Admin", "admin@example.com")
        response = client.get("/api/auth/verify", headers=auth_headers(admin["token"]))
        assert response.status_code == 200
        assert response.json()["id"] == admin["user"]["id"]

    def test_entity_routes_need_a_token(self):
        assert client.get("/api/users").status_code == 401
        assert client.get("/api/users", headers=auth_headers("not-a-jwt")).status_code == 401


class TestEntityRoutes:
    def setup_method(self):
        self.admin = register(client, "Admin", "admin@example.com")
        self.headers = auth_headers(self.admin["token"])
        self.assignment = {
            "id": "a1",
            "title": "Limits worksheet",
            "dueDate": "2026-03-01T12:00:00Z",
            "studentId": "s1",
            "coachId": self.admin["user"]["id"],
            "status": "submitted",
            "submittedAt": "2026-02-28T10:00:00Z",
        }

    def test_create_and_get(self):
        created = client.post("/api/assignments", headers=self.headers, json=self.assignment)
        assert created.status_code == 201
        assert created.json()["checklist"] == []

        fetched = client.get("/api/assignments/a1", headers=self.headers)
        assert fetched.status_code == 200
        assert fetched.json()["title"] == "Limits worksheet"
        assert client.get("/api/assignments/missing", headers=self.headers).status_code == 404

    def test_duplicate_id_conflicts(self):
        client.post("/api/assignments", headers=self.headers, json=self.assignment)
        response = client.post("/api/assignments", headers=self.headers, json=self.assignment)
        assert response.status_code == 409

    def test_create_validates_invariants(self):
        pending_with_grade = {**self.assignment, "status": "pending", "submittedAt": None, "grade": 50}
        response = client.post("/api/assignments", headers=self.headers, json=pending_with_grade)
        assert response.status_code == 422

    def test_partial_update(self):
        client.post("/api/assignments", headers=self.headers, json=self.assignment)
        response = client.put("/api/assignments/a1", headers=self.headers, json={
            "status": "graded", "grade": 85, "gradedAt": "2026-03-02T09:00:00Z"
        })
        assert response.status_code == 200
        body = response.json()
        assert body["grade"] == 85
        assert body["title"] == "Limits worksheet"

    def test_update_errors(self):
        client.post("/api/assignments", headers=self.headers, json=self.assignment)
        assert client.put("/api/assignments/a1", headers=self.headers, json={}).status_code == 400
        assert client.put("/api/assignments/nope", headers=self.headers, json={"title": "x"}).status_code == 404
        # a grade on a submitted assignment breaks the status invariant
        broken = client.put("/api/assignments/a1", headers=self.headers, json={"grade": 90})
        assert broken.status_code == 422
        assert client.get("/api/assignments/a1", headers=self.headers).json()["grade"] is None

    def test_delete_by_ids(self):
        for assignment_id in ("a1", "a2", "a3"):
            client.post("/api/assignments", headers=self.headers, json={**self.assignment, "id": assignment_id})
        response = client.request("DELETE", "/api/assignments", headers=self.headers, json={"ids": ["a1", "a3"]})
        assert response.status_code == 204
        remaining = client.get("/api/assignments", headers=self.headers).json()
        assert [a["id"] for a in remaining] == ["a2"]

    def test_staff_can_delete_their_own_account(self):
        me = self.admin["user"]["id"]
        response = client.request("DELETE", "/api/users", headers=self.headers, json={"ids": [me]})
        assert response.status_code == 204
        assert client.get("/api/auth/verify", headers=self.headers).status_code == 401

    def test_message_timestamps_must_be_iso(self):
        message = {
            "id": "m1", "senderId": "s1", "conversationId": "c1", "text": "hi", "timestamp": "yesterday",
        }
        assert client.post("/api/messages", headers=self.headers, json=message).status_code == 422
        assert client.get("/api/messages", headers=self.headers).json() == []

        valid = {**message, "timestamp": "2026-01-05T10:00:00Z"}
        assert client.post("/api/messages", headers=self.headers, json=valid).status_code == 201
        broken = client.put("/api/messages/m1", headers=self.headers, json={"timestamp": "last week"})
        assert broken.status_code == 422

    def test_notification_timestamps_must_be_iso(self):
        notification = {"id": "n1", "userId": "s1", "message": "Graded", "timestamp": "soon"}
        assert client.post("/api/notifications", headers=self.headers, json=notification).status_code == 422

    def test_students_cannot_delete(self):
        student = register(client, "Ece", "ece@example.com")
        response = client.request(
            "DELETE", "/api/assignments", headers=auth_headers(student["token"]), json={"ids": ["a1"]}
        )
        assert response.status_code == 403

    def test_calendar_events_route(self):
        event = {"id": "e1", "userId": "s1", "title": "Physics", "date": "2026-03-04", "type": "study"}
        assert client.post("/api/calendarEvents", headers=self.headers, json=event).status_code == 201
        assert len(client.get("/api/calendarEvents", headers=self.headers).json()) == 1

    def test_badges_are_seeded(self):
        badges = client.get("/api/badges", headers=self.headers).json()
        assert {b["id"] for b in badges} >= {"first-assignment", "perfect-score", "streak-master"}


class TestFindOrCreateConversation:
    def test_creates_once(self):
        admin = register(client, "Admin", "admin@example.com")
        headers = auth_headers(admin["token"])
        body = {"userId1": admin["user"]["id"], "userId2": "s1"}

        created = client.post("/api/conversations/findOrCreate", headers=headers, json=body)
        assert created.status_code == 201
        assert created.json()["isGroup"] is False

        reversed_body = {"userId1": "s1", "userId2": admin["user"]["id"]}
        found = client.post("/api/conversations/findOrCreate", headers=headers, json=reversed_body)
        assert found.status_code == 200
        assert found.json()["id"] == created.json()["id"]

    def test_rejects_talking_to_yourself(self):
        admin = register(client, "Admin", "admin@example.com")
        me = admin["user"]["id"]
        response = client.post(
            "/api/conversations/findOrCreate",
            headers=auth_headers(admin["token"]),
            json={"userId1": me, "userId2": me},
        )
        assert response.status_code == 400
        assert response.json() == {"detail": "A conversation needs two different users"}


class TestDemoSeed:
    def test_staff_reset_to_demo_data(self):
        admin = register(client, "Admin", "admin@example.com")
        response = client.post("/api/seed", headers=auth_headers(admin["token"]))
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["counts"] == {"users": 3, "badges": 7, "templates": 27, "resources": 36}

        # the caller was wiped along with everything else
        assert client.get("/api/auth/verify", headers=auth_headers(admin["token"])).status_code == 401

        login = client.post("/api/login", json={"email": "admin@tutordesk.dev", "password": "password"})
        assert login.status_code == 200
        headers = auth_headers(login.json()["token"])
        announcements = client.get("/api/conversations/conv-announcements", headers=headers).json()
        assert announcements["participantIds"] == ["user-superadmin", "user-coach-1", "user-coach-2"]
        assert announcements["adminId"] == "user-superadmin"
        resources = client.get("/api/resources", headers=headers).json()
        assert {r["uploaderId"] for r in resources} == {"user-superadmin"}
        assert len(client.get("/api/templates", headers=headers).json()) == 27

    def test_students_cannot_seed(self):
        register(client, "Admin", "admin@example.com")
        student = register(client, "Ece", "ece@example.com")
        response = client.post("/api/seed", headers=auth_headers(student["token"]))
        assert response.status_code == 403
        assert len(client.get("/api/users", headers=auth_headers(student["token"])).json()) == 2

    def test_seed_is_repeatable(self):
        admin = register(client, "Admin", "admin@example.com")
        client.post("/api/seed", headers=auth_headers(admin["token"]))
        token = client.post("/api/login", json={"email": "ayse@tutordesk.dev", "password": "password"}).json()["token"]
        again = client.post("/api/seed", headers=auth_headers(token))
        assert again.status_code == 200
        assert client.get("/api/auth/verify", headers=auth_headers(token)).json()["id"] == "user-coach-1"


class TestAIProxy:
    def setup_method(self):
        self.headers = auth_headers(register(client, "Admin", "admin@example.com")["token"])

    def test_generate_text(self):
        with patch("tutordesk.ai.generate_text", new=AsyncMock(return_value="A clear description")) as mock:
            response = client.post("/api/ai/generateText", headers=self.headers, json={
                "prompt": "Describe limits", "temperature": 0.7
            })
        assert response.status_code == 200
        assert response.json() == {"result": "A clear description"}
        mock.assert_awaited_once_with("Describe limits", 0.7)

    def test_generate_json(self):
        result = {"suggestedGrade": 80, "rationale": "Solid work"}
        with patch("tutordesk.ai.generate_json", new=AsyncMock(return_value=result)):
            response = client.post("/api/ai/generateJson", headers=self.headers, json={
                "prompt": "Grade this", "schema": "gradeSuggestion"
            })
        assert response.status_code == 200
        assert response.json() == {"result": result}

    def test_unknown_schema(self):
        response = client.post("/api/ai/generateJson", headers=self.headers, json={
            "prompt": "x", "schema": "horoscope"
        })
        assert response.status_code == 400

    def test_chat(self):
        with patch("tutordesk.ai.chat", new=AsyncMock(return_value="Try factoring first.")):
            response = client.post("/api/ai/chat", headers=self.headers, json={
                "history": [{"role": "user", "text": "How do I solve x^2-1=0?"}],
                "systemInstruction": "Be a tutor",
            })
        assert response.status_code == 200
        assert response.json() == {"text": "Try factoring first."}

    def test_model_failure_is_a_500(self):
        with patch("tutordesk.ai.generate_text", new=AsyncMock(side_effect=RuntimeError("OPENAI_API_KEY not set"))):
            response = client.post("/api/ai/generateText", headers=self.headers, json={"prompt": "x"})
        assert response.status_code == 500
        assert response.json() == {"detail": "OPENAI_API_KEY not set"}
