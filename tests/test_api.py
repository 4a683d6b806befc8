"""
HTTP-level tests: routing, auth and the error envelope.
"""
from datetime import datetime, timedelta

import pytest

from exambank.core import cache as cache_module
from exambank.main import app
from exambank.models.orm import ExamStatus, QuestionStatus, utcnow

V1 = "/v1"
TEN = datetime(2030, 3, 1, 10, 0)


def _exam_body(group, pool, categories=(), testing_date="2030-03-01T10:00:00", duration=60):
    return {
        "name": "Final exam",
        "exam_group_id": group.id,
        "pool_id": pool.id,
        "number_of_questions": 4,
        "testing_date": testing_date,
        "duration": duration,
        "exam_release_date": "2030-03-05T10:00:00",
        "categories": [{"selected_id": c.id, "number_of_question_per_category": n} for c, n in categories],
    }


class TestAuth:

    def test_missing_token_is_401(self, client):
        response = client.get(f"{V1}/exams")
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

    def test_garbage_token_is_401(self, client):
        response = client.get(f"{V1}/exams", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    def test_non_admin_is_401(self, client, user_headers):
        response = client.get(f"{V1}/exams", headers=user_headers)
        assert response.status_code == 401
        assert response.json()["error"]["message"] == "UNAUTHORIZED ACCESS."

    def test_mock_login_issues_usable_token(self, client):
        response = client.post(f"{V1}/auth/mock-login", json={"user_id": "admin-9", "roles": ["admin"]})
        assert response.status_code == 200
        token = response.json()["access_token"]
        listed = client.get(f"{V1}/exams", headers={"Authorization": f"Bearer {token}"})
        assert listed.status_code == 200


def test_health(client):
    assert client.get("/health").json()["status"] == "ok"


def test_schema_violation_uses_error_envelope(client, admin_headers):
    response = client.post(f"{V1}/exams", json={"name": "x"}, headers=admin_headers)
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


def test_unknown_route_uses_error_envelope(client):
    response = client.get(f"{V1}/nowhere")
    assert response.status_code == 404
    assert response.json()["error"] == {"code": "HTTP_ERROR", "message": "Not Found", "details": {},
                                         "status_code": 404}


def test_wrong_method_uses_error_envelope(client):
    response = client.get(f"{V1}/auth/mock-login")
    assert response.status_code == 405
    assert response.json()["error"]["status_code"] == 405
    assert "POST" in response.headers["allow"]


class TestExamEndpoints:

    @pytest.fixture
    def world(self, make):
        pool = make.pool()
        group = make.exam_group()
        ada = make.contributor(pool)
        genetics = make.category(pool)
        make.questions(genetics, ada, 6)
        return pool, group, genetics

    def test_create_exam(self, client, admin_headers, world):
        pool, group, genetics = world
        response = client.post(f"{V1}/exams", json=_exam_body(group, pool, [(genetics, 4)]), headers=admin_headers)
        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "generated"
        assert body["selected_questions"] == 4

    def test_create_overlapping_exam_is_400(self, client, admin_headers, make, world):
        pool, group, _ = world
        make.exam(group, pool, TEN)
        response = client.post(f"{V1}/exams", json=_exam_body(group, pool, testing_date="2030-03-01T10:30:00"),
                               headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["error"]["details"]["field"] == "testing_date"

    def test_timezone_aware_dates_are_normalised(self, client, admin_headers, world):
        pool, group, _ = world
        response = client.post(f"{V1}/exams", json=_exam_body(group, pool, testing_date="2030-03-01T12:00:00+02:00"),
                               headers=admin_headers)
        assert response.status_code == 201
        assert response.json()["testing_date"].startswith("2030-03-01T10:00:00")

    def test_create_requires_admin(self, client, user_headers, world):
        pool, group, _ = world
        response = client.post(f"{V1}/exams", json=_exam_body(group, pool), headers=user_headers)
        assert response.status_code == 401

    def test_intervals_are_public(self, client, make, world):
        pool, group, _ = world
        make.exam(group, pool, TEN, duration=90)
        response = client.get(f"{V1}/exams/intervals", params={"exam_group_id": group.id})
        assert response.status_code == 200
        [interval] = response.json()
        assert interval["end"].startswith("2030-03-01T11:30:00")

    def test_get_exam_detail(self, client, admin_headers, make, world):
        pool, group, _ = world
        exam = make.exam(group, pool, TEN)
        body = client.get(f"{V1}/exams/{exam.id}", headers=admin_headers).json()
        assert body["pool_name"] == "Biology"
        assert body["exam_group_name"] == "Spring session"

    def test_unknown_exam_is_404(self, client, admin_headers):
        response = client.get(f"{V1}/exams/missing", headers=admin_headers)
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    def test_publish_and_unpublish(self, client, admin_headers, make, world):
        pool, group, _ = world
        exam = make.exam(group, pool, utcnow() + timedelta(days=30))
        published = client.post(f"{V1}/exams/{exam.id}/publish", headers=admin_headers)
        assert published.json()["status"] == "published"
        unpublished = client.post(f"{V1}/exams/{exam.id}/unpublish", headers=admin_headers)
        assert unpublished.json()["status"] == "generated"

    def test_unpublish_past_exam_is_403(self, client, admin_headers, make, world):
        pool, group, _ = world
        exam = make.exam(group, pool, datetime(2001, 1, 1), status=ExamStatus.PUBLISHED)
        response = client.post(f"{V1}/exams/{exam.id}/unpublish", headers=admin_headers)
        assert response.status_code == 403

    def test_release_grades(self, client, admin_headers, make, world):
        pool, group, _ = world
        exam = make.exam(group, pool, datetime(2001, 1, 1), status=ExamStatus.PUBLISHED)
        response = client.post(f"{V1}/exams/{exam.id}/release-grades", headers=admin_headers)
        assert response.json()["status"] == "gradeReleased"

    def test_list_is_paged(self, client, admin_headers, make, world):
        pool, group, _ = world
        for day in range(1, 9):
            make.exam(group, pool, datetime(2030, 4, day, 9, 0), name=f"Exam {day}")
        first = client.get(f"{V1}/exams/by-pool/{pool.id}", headers=admin_headers).json()
        rest = client.get(f"{V1}/exams/by-pool/{pool.id}", params={"skip": 6}, headers=admin_headers).json()
        assert len(first) == 6
        assert len(rest) == 2
        assert first[0]["name"] == "Exam 8"
        count = client.get(f"{V1}/exams/count", params={"search": "Exam"}, headers=admin_headers).json()
        assert count["count"] == 8


class TestAnalyticsEndpoints:

    def test_pool_analytics(self, client, admin_headers, make):
        pool = make.pool()
        ada = make.contributor(pool)
        make.questions(make.category(pool), ada, 2)
        body = client.get(f"{V1}/analytics/pools/{pool.id}", headers=admin_headers).json()
        assert body["total_questions"] == 2
        assert body["total_approved_questions"] == 2

    def test_exam_analytics_requires_admin(self, client, user_headers, make):
        exam = make.exam(make.exam_group(), make.pool(), TEN)
        assert client.get(f"{V1}/analytics/exams/{exam.id}", headers=user_headers).status_code == 401

    def test_exam_analytics_unknown(self, client, admin_headers):
        response = client.get(f"{V1}/analytics/exams/missing", headers=admin_headers)
        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Exam not found"

    def test_test_taker_results(self, client, admin_headers, make):
        pool, group = make.pool(), make.exam_group()
        taker = make.test_taker(group)
        make.session(make.exam(group, pool, TEN, status=ExamStatus.PUBLISHED), taker, 5)
        body = client.get(f"{V1}/analytics/testtakers/{taker.id}", headers=admin_headers).json()
        assert body["username"] == "taker1"
        assert body["result"][0]["grade"] == 50.0

    @pytest.fixture
    def served(self, client):
        entries = {}

        class DictCache:
            def get(self, key):
                return entries.get(key)

            def set(self, key, value, expire=None):
                entries[key] = value
                return True

            def invalidate(self, *keys):
                return sum(1 for k in keys if entries.pop(k, None) is not None)

        app.dependency_overrides[cache_module.get_analytics_cache] = DictCache
        return entries

    def test_cached_payload_is_served(self, client, admin_headers, make, served):
        pool = make.pool()
        first = client.get(f"{V1}/analytics/pools/{pool.id}", headers=admin_headers)
        assert cache_module.pool_analytics_key(pool.id) in served
        served[cache_module.pool_analytics_key(pool.id)]["pool_name"] = "From cache"
        second = client.get(f"{V1}/analytics/pools/{pool.id}", headers=admin_headers)

        assert first.json()["pool_name"] == "Biology"
        assert second.json()["pool_name"] == "From cache"

    def test_new_question_invalidates_pool_analytics(self, client, admin_headers, make, served):
        pool = make.pool()
        category = make.category(pool)
        contributor = make.contributor(pool)
        url = f"{V1}/analytics/pools/{pool.id}"
        assert client.get(url, headers=admin_headers).json()["total_questions"] == 0

        created = client.post(f"{V1}/questions", headers=admin_headers, json={
            "title": "What is RNA?", "cat_id": category.id, "contributor_id": contributor.id,
        })
        assert created.status_code == 201
        assert cache_module.pool_analytics_key(pool.id) not in served

        body = client.get(url, headers=admin_headers).json()
        assert body["total_questions"] == 1
        assert body["question_status_metrics"] == {"pending": 1}

    def test_question_review_invalidates_pool_analytics(self, client, admin_headers, make, served):
        pool = make.pool()
        question = make.question(make.category(pool), make.contributor(pool), status=QuestionStatus.PENDING)
        url = f"{V1}/analytics/pools/{pool.id}"
        assert client.get(url, headers=admin_headers).json()["total_approved_questions"] == 0

        client.post(f"{V1}/questions/{question.id}/review", json={"status": "approved"}, headers=admin_headers)

        assert client.get(url, headers=admin_headers).json()["total_approved_questions"] == 1

    def test_new_exam_invalidates_pool_analytics(self, client, admin_headers, make, served):
        pool = make.pool()
        group = make.exam_group()
        url = f"{V1}/analytics/pools/{pool.id}"
        assert client.get(url, headers=admin_headers).json()["exam_count"] == 0

        created = client.post(f"{V1}/exams", json=_exam_body(group, pool), headers=admin_headers)
        assert created.status_code == 201

        assert client.get(url, headers=admin_headers).json()["exam_count"] == 1

    def test_category_changes_invalidate_pool_analytics(self, client, admin_headers, make, served):
        pool = make.pool()
        url = f"{V1}/analytics/pools/{pool.id}"
        assert client.get(url, headers=admin_headers).json()["category_distribution"] == []

        category = client.post(f"{V1}/categories", json={"name": "Optics", "pool_id": pool.id},
                               headers=admin_headers).json()
        names = [c["category_name"] for c in client.get(url, headers=admin_headers).json()["category_distribution"]]
        assert names == ["Optics"]

        client.put(f"{V1}/categories/{category['id']}", json={"name": "Waves"}, headers=admin_headers)
        names = [c["category_name"] for c in client.get(url, headers=admin_headers).json()["category_distribution"]]
        assert names == ["Waves"]

        client.delete(f"{V1}/categories/{category['id']}", headers=admin_headers)
        assert client.get(url, headers=admin_headers).json()["category_distribution"] == []

    def test_new_contributor_invalidates_pool_analytics(self, client, admin_headers, make, served):
        pool = make.pool()
        url = f"{V1}/analytics/pools/{pool.id}"
        assert client.get(url, headers=admin_headers).json()["contributor_count"] == 0

        client.post(f"{V1}/contributors", json={"name": "Ada", "pool_id": pool.id}, headers=admin_headers)

        assert client.get(url, headers=admin_headers).json()["contributor_count"] == 1


class TestResourceEndpoints:

    def test_pool_and_category_crud(self, client, admin_headers):
        pool = client.post(f"{V1}/pools", json={"name": "Physics"}, headers=admin_headers).json()
        created = client.post(f"{V1}/categories", json={"name": "Optics", "pool_id": pool["id"]},
                              headers=admin_headers)
        assert created.status_code == 201
        category_id = created.json()["id"]

        renamed = client.put(f"{V1}/categories/{category_id}", json={"name": "Waves"}, headers=admin_headers)
        assert renamed.json()["name"] == "Waves"
        listed = client.get(f"{V1}/categories", params={"pool_id": pool["id"]}).json()
        assert [c["name"] for c in listed] == ["Waves"]

        assert client.delete(f"{V1}/categories/{category_id}", headers=admin_headers).status_code == 200
        assert client.get(f"{V1}/categories/{category_id}").status_code == 404

    def test_category_with_questions_cannot_be_deleted(self, client, admin_headers, make):
        pool = make.pool()
        category = make.category(pool)
        make.question(category, make.contributor(pool))
        response = client.delete(f"{V1}/categories/{category.id}", headers=admin_headers)
        assert response.status_code == 400

    def test_question_review_flow(self, client, admin_headers, make, db):
        pool = make.pool()
        category = make.category(pool)
        contributor = make.contributor(pool)
        created = client.post(f"{V1}/questions", headers=admin_headers, json={
            "title": "Which organelle makes ATP?",
            "cat_id": category.id,
            "contributor_id": contributor.id,
            "answers": [{"text": "Mitochondria", "is_correct": True}, {"text": "Nucleus"}],
        })
        assert created.status_code == 201
        question = created.json()
        assert question["status"] == QuestionStatus.PENDING.value

        approved = client.post(f"{V1}/questions/{question['id']}/review", json={"status": "approved"},
                               headers=admin_headers)
        assert approved.json()["status"] == "approved"
        again = client.post(f"{V1}/questions/{question['id']}/review", json={"status": "rejected"},
                            headers=admin_headers)
        assert again.status_code == 400

    def test_question_contributor_must_share_pool(self, client, admin_headers, make):
        category = make.category(make.pool())
        outsider = make.contributor(make.pool(name="Chemistry"))
        response = client.post(f"{V1}/questions", headers=admin_headers, json={
            "title": "Q", "cat_id": category.id, "contributor_id": outsider.id,
        })
        assert response.status_code == 400

    def test_duplicate_username_rejected(self, client, admin_headers, make):
        group = make.exam_group()
        body = {"username": "sam", "exam_group_id": group.id}
        assert client.post(f"{V1}/testtakers", json=body, headers=admin_headers).status_code == 201
        assert client.post(f"{V1}/testtakers", json=body, headers=admin_headers).status_code == 400
