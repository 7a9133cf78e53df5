"""HTTP tests for the tax deadline endpoints."""


def deadlines_url(owner_id: str, year: int = 2025) -> str:
    return f"/api/v1/owners/{owner_id}/deadlines/{year}"


class TestListDeadlines:

    def test_returns_five_with_groups(self, client, account_id):
        response = client.get(deadlines_url(account_id))

        assert response.status_code == 200
        data = response.json()
        assert data["fiscal_year"] == 2025
        assert len(data["deadlines"]) == 5
        assert [d["display_name"] for d in data["groups"]["overdue"]] == [
            "BTW-aangifte Q1 2025",
            "Inkomstenbelasting 2024",
        ]
        assert len(data["groups"]["upcoming"]) == 3
        assert data["groups"]["acknowledged"] == []

    def test_repeat_view_is_stable(self, client, account_id):
        first = client.get(deadlines_url(account_id)).json()
        second = client.get(deadlines_url(account_id)).json()

        assert [d["id"] for d in first["deadlines"]] == [d["id"] for d in second["deadlines"]]

    def test_year_out_of_range(self, client, account_id):
        assert client.get(deadlines_url(account_id, 1999)).status_code == 422


class TestAcknowledgeDeadline:

    def test_acknowledge_moves_to_acknowledged_group(self, client, account_id):
        deadlines = client.get(deadlines_url(account_id)).json()["deadlines"]
        q1 = deadlines[0]

        response = client.post(f"/api/v1/owners/{account_id}/deadlines/{q1['id']}/acknowledge")

        assert response.status_code == 200
        assert response.json()["status"] == "acknowledged"
        groups = client.get(deadlines_url(account_id)).json()["groups"]
        assert [d["id"] for d in groups["acknowledged"]] == [q1["id"]]

    def test_acknowledge_twice_keeps_timestamp(self, client, account_id, clock):
        deadline_id = client.get(deadlines_url(account_id)).json()["deadlines"][2]["id"]
        url = f"/api/v1/owners/{account_id}/deadlines/{deadline_id}/acknowledge"

        first = client.post(url).json()
        clock.advance(days=1)
        second = client.post(url).json()

        assert second["acknowledged_at"] == first["acknowledged_at"]

    def test_unknown_deadline(self, client, account_id):
        response = client.post(f"/api/v1/owners/{account_id}/deadlines/nope/acknowledge")

        assert response.status_code == 404

    def test_foreign_deadline(self, client, account_id):
        deadline_id = client.get(deadlines_url("someone-else")).json()["deadlines"][0]["id"]

        response = client.post(f"/api/v1/owners/{account_id}/deadlines/{deadline_id}/acknowledge")

        assert response.status_code == 404


class TestDueSoonCount:

    def test_count(self, client, account_id):
        client.get(deadlines_url(account_id))

        response = client.get(f"/api/v1/owners/{account_id}/deadlines/due-soon/count")

        # 2025-06-15: nothing due before 2025-07-15
        assert response.status_code == 200
        assert response.json() == {"count": 0, "window_days": 30}
