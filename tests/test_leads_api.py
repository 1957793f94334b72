"""API tests for /api/superadmin/leads/*.

Tests:
- Auth guards (anonymous 401, non-superadmin 403)
- List with filters, pagination, stats, sales team
- Create / get / update / delete
- Activities, business search, link / unlink
- Error bodies (400, 404, 409)
"""

import pytest

from leadpipe.extensions import db
from leadpipe.models.lead import Lead
from leadpipe.models.lead_activity import LeadActivity
from leadpipe.services import lead_service

BASE = "/api/superadmin/leads"


def _create(client, **fields):
    payload = {"name": "Acme Corp", "source": "WEBSITE"}
    payload.update(fields)
    response = client.post(BASE, json=payload)
    assert response.status_code == 201, response.get_json()
    return response.get_json()["lead"]


class TestAuthGuards:

    def test_anonymous_gets_401(self, client, seed_data):
        response = client.get(BASE)
        assert response.status_code == 401
        assert response.get_json()["message"] == "Unauthorized"

    def test_non_superadmin_gets_403(self, client, seed_data):
        client.post("/auth/login", json={
            "email": "merchant@example.com", "password": "merchant123",
        })
        response = client.get(BASE)
        assert response.status_code == 403
        assert response.get_json()["message"] == "Forbidden"

    def test_anonymous_cannot_write(self, client, seed_data):
        response = client.post(BASE, json={"name": "Sneaky"})
        assert response.status_code == 401
        assert Lead.query.count() == 0


class TestCreateLead:

    def test_create_returns_201_with_lead(self, superadmin_client):
        lead = _create(superadmin_client)
        assert lead["status"] == "NEW"
        assert lead["priority"] == "MEDIUM"
        assert lead["_count"]["activities"] == 1
        assert lead["owner"] is None
        assert lead["isOverdue"] is False

    def test_missing_name_is_400(self, superadmin_client):
        response = superadmin_client.post(BASE, json={"email": "x@y.test"})
        assert response.status_code == 400
        body = response.get_json()
        assert body["field"] == "name"

    @pytest.mark.parametrize("amount", ["inf", "-Infinity", "nan"])
    def test_non_finite_estimated_value_is_400(self, superadmin_client, amount):
        response = superadmin_client.post(BASE, json={"name": "Priced", "estimatedValue": amount})
        assert response.status_code == 400
        assert response.get_json()["field"] == "estimatedValue"

        stats = superadmin_client.get(f"{BASE}/stats")
        assert stats.get_json()["overview"]["pipelineValue"] == 0

    def test_non_object_body_is_400(self, superadmin_client):
        response = superadmin_client.post(BASE, json=["not", "an", "object"])
        assert response.status_code == 400

    def test_create_with_team_member(self, superadmin_client, seed_data):
        lead = _create(superadmin_client, teamMemberId=seed_data["alice"].id)
        assert lead["teamMember"]["name"] == "Alice Seller"
        assert lead["owner"]["kind"] == "team_member"
        assert lead["assignedAt"] is not None


class TestListLeads:

    def test_filter_sort_and_pagination(self, superadmin_client):
        for name in ["Charlie", "Alpha", "Bravo"]:
            _create(superadmin_client, name=name)
        for name in ["Delta", "Echo"]:
            _create(superadmin_client, name=name, status="WON")

        response = superadmin_client.get(f"{BASE}?status=NEW&sortBy=name_asc")
        assert response.status_code == 200
        body = response.get_json()
        assert [l["name"] for l in body["leads"]] == ["Alpha", "Bravo", "Charlie"]
        assert body["pagination"] == {"page": 1, "limit": 20, "total": 3, "pages": 1}

    def test_stats_block_counts_all_leads(self, superadmin_client):
        _create(superadmin_client, name="One")
        _create(superadmin_client, name="Two", status="WON", source="REFERRAL")

        body = superadmin_client.get(f"{BASE}?status=NEW").get_json()
        assert body["stats"]["byStatus"] == {"new": 1, "won": 1}
        assert body["stats"]["bySource"] == {"website": 1, "referral": 1}

    def test_list_includes_activity_preview(self, superadmin_client):
        _create(superadmin_client)
        body = superadmin_client.get(BASE).get_json()
        assert [a["type"] for a in body["leads"][0]["activities"]] == ["CREATED"]

    def test_sales_team_lists_active_members_with_counts(self, superadmin_client, seed_data):
        _create(superadmin_client, teamMemberId=seed_data["bob"].id)
        body = superadmin_client.get(BASE).get_json()

        team = {m["name"]: m["_count"]["assignedLeads"] for m in body["salesTeam"]}
        assert team == {"Alice Seller": 0, "Bob Closer": 1}
        assert [u["email"] for u in body["teamMembers"]] == [
            "admin@leadpipe.local", "ops@leadpipe.local",
        ]

    def test_assignee_filter(self, superadmin_client, seed_data):
        _create(superadmin_client, name="Owned", teamMemberId=seed_data["alice"].id)
        _create(superadmin_client, name="Loose")

        owned = superadmin_client.get(f"{BASE}?assignedTo={seed_data['alice'].id}").get_json()
        loose = superadmin_client.get(f"{BASE}?assignedTo=unassigned").get_json()
        assert [l["name"] for l in owned["leads"]] == ["Owned"]
        assert [l["name"] for l in loose["leads"]] == ["Loose"]


class TestSingleLead:

    def test_get_includes_history_and_business(self, superadmin_client, seed_data):
        created = _create(superadmin_client, email="owner@sunrise.test", status="WON")
        body = superadmin_client.get(f"{BASE}/{created['id']}").get_json()

        assert body["lead"]["convertedToId"] == seed_data["bakery"].id
        assert body["convertedBusiness"]["slug"] == "sunrise-bakery"
        assert [a["type"] for a in body["lead"]["activities"]] == ["CREATED"]

    def test_get_missing_is_404(self, superadmin_client):
        response = superadmin_client.get(f"{BASE}/does-not-exist")
        assert response.status_code == 404
        assert "not found" in response.get_json()["message"]

    def test_update_status(self, superadmin_client):
        created = _create(superadmin_client)
        response = superadmin_client.put(
            f"{BASE}/{created['id']}", json={"status": "CONTACTED"}
        )
        assert response.status_code == 200
        lead = response.get_json()["lead"]
        assert lead["status"] == "CONTACTED"
        assert lead["version"] == 2
        assert lead["activities"][0]["type"] == "STATUS_CHANGE"
        assert lead["activities"][0]["metadata"] == {
            "oldStatus": "NEW", "newStatus": "CONTACTED",
        }

    def test_update_to_won_auto_matches(self, superadmin_client, seed_data):
        created = _create(superadmin_client, email="ceo@acme.com", status="NEGOTIATING")
        seed_data["boutique"].email = "ceo@acme.com"
        db.session.commit()

        lead = superadmin_client.put(
            f"{BASE}/{created['id']}", json={"status": "WON", "convertedToId": None}
        ).get_json()["lead"]
        assert lead["convertedToId"] == seed_data["boutique"].id
        assert lead["convertedAt"] is not None

    def test_won_to_lost_clears_conversion(self, superadmin_client):
        created = _create(superadmin_client, email="owner@sunrise.test", status="WON")
        assert created["convertedToId"] is not None

        lead = superadmin_client.put(
            f"{BASE}/{created['id']}", json={"status": "LOST"}
        ).get_json()["lead"]
        assert lead["convertedToId"] is None
        assert lead["convertedAt"] is None

    def test_stale_version_is_409(self, superadmin_client):
        created = _create(superadmin_client)
        superadmin_client.put(f"{BASE}/{created['id']}", json={"notes": "first", "version": 1})

        response = superadmin_client.put(
            f"{BASE}/{created['id']}", json={"notes": "second", "version": 1}
        )
        assert response.status_code == 409
        assert response.get_json()["field"] == "version"
        assert db.session.get(Lead, created["id"]).notes == "first"

    def test_invalid_enum_is_400(self, superadmin_client):
        created = _create(superadmin_client)
        response = superadmin_client.put(f"{BASE}/{created['id']}", json={"priority": "MEGA"})
        assert response.status_code == 400
        assert response.get_json()["field"] == "priority"

    def test_delete(self, superadmin_client):
        created = _create(superadmin_client)
        response = superadmin_client.delete(f"{BASE}/{created['id']}")
        assert response.status_code == 200
        assert response.get_json()["success"] is True
        assert db.session.get(Lead, created["id"]) is None
        assert LeadActivity.query.filter_by(lead_id=created["id"]).count() == 0

    def test_delete_missing_is_404(self, superadmin_client):
        assert superadmin_client.delete(f"{BASE}/nope").status_code == 404


class TestActivities:

    def test_add_call(self, superadmin_client):
        created = _create(superadmin_client)
        response = superadmin_client.post(
            f"{BASE}/{created['id']}/activities",
            json={"type": "CALL", "title": "Intro call", "description": "Went well"},
        )
        assert response.status_code == 201
        body = response.get_json()
        assert body["activity"]["type"] == "CALL"
        assert body["activity"]["performedBy"] == "Admin User"
        assert body["lead"]["contactCount"] == 1
        assert body["lead"]["lastContactedAt"] is not None

    def test_system_type_is_400(self, superadmin_client):
        created = _create(superadmin_client)
        response = superadmin_client.post(
            f"{BASE}/{created['id']}/activities",
            json={"type": "STATUS_CHANGE", "title": "Forged"},
        )
        assert response.status_code == 400
        assert response.get_json()["field"] == "type"

    def test_missing_lead_is_404(self, superadmin_client):
        response = superadmin_client.post(
            f"{BASE}/nope/activities", json={"type": "NOTE", "title": "x"}
        )
        assert response.status_code == 404


class TestBusinessLinking:

    def test_search_by_query(self, superadmin_client):
        body = superadmin_client.get(f"{BASE}/search-business?q=moon").get_json()
        assert [b["slug"] for b in body["businesses"]] == ["moon-boutique"]
        assert body["businesses"][0]["subscriptionPlan"] == "PRO"
        assert body["exactMatch"] is False

    def test_search_by_email(self, superadmin_client):
        body = superadmin_client.get(
            f"{BASE}/search-business?email=owner@sunrise.test"
        ).get_json()
        assert body["exactMatch"] is True

    def test_search_short_query(self, superadmin_client):
        body = superadmin_client.get(f"{BASE}/search-business?q=m").get_json()
        assert body == {"businesses": [], "exactMatch": False}

    def test_link_and_unlink(self, superadmin_client, seed_data):
        created = _create(superadmin_client, status="WON")
        url = f"{BASE}/{created['id']}/link"

        linked = superadmin_client.post(
            url, json={"businessId": seed_data["boutique"].id}
        ).get_json()["lead"]
        assert linked["convertedTo"]["slug"] == "moon-boutique"
        assert linked["convertedAt"] is not None

        unlinked = superadmin_client.delete(url).get_json()["lead"]
        assert unlinked["convertedToId"] is None
        assert unlinked["status"] == "WON"

    def test_link_unknown_business_is_404(self, superadmin_client):
        created = _create(superadmin_client, status="WON")
        response = superadmin_client.post(
            f"{BASE}/{created['id']}/link", json={"businessId": "nope"}
        )
        assert response.status_code == 404


class TestStatsEndpoint:

    def test_stats_shape(self, superadmin_client):
        _create(superadmin_client)
        _create(superadmin_client, name="Won", status="WON")

        response = superadmin_client.get(f"{BASE}/stats")
        assert response.status_code == 200
        body = response.get_json()
        assert body["overview"]["totalLeads"] == 2
        assert body["overview"]["conversionRate"] == 0.5
        assert set(body) >= {
            "overview", "byStatus", "bySource", "byPriority",
            "byTeamMember", "leadsByDay", "recentConversions",
        }

    def test_stats_is_not_a_lead_id(self, superadmin_client):
        # /stats must not be routed to the single-lead handler.
        response = superadmin_client.get(f"{BASE}/stats")
        assert "lead" not in response.get_json()


class TestServiceSeededLeads:

    def test_leads_created_by_service_show_in_api(self, superadmin_client):
        lead_service.create_lead({"name": "Imported", "source": "PARTNER"})
        db.session.commit()

        body = superadmin_client.get(f"{BASE}?source=partner").get_json()
        assert [l["name"] for l in body["leads"]] == ["Imported"]
        assert body["leads"][0]["activities"][0]["performedBy"] == "System"
