# tests/test_exports.py — CSV export tests
import csv
import io
from datetime import date

import pytest
from httpx import AsyncClient

from routers.exports import to_csv, SIGNAL_COLUMNS, TREND_COLUMNS, LINK_COLUMNS
from tests.conftest import get_auth_headers


def _rows(text: str):
    return list(csv.reader(io.StringIO(text)))


def test_to_csv_quotes_commas():
    text = to_csv(["ID", "Title"], [{"ID": "1", "Title": "Cheap, clean power"}])
    assert _rows(text) == [["ID", "Title"], ["1", "Cheap, clean power"]]


def test_to_csv_escapes_formula_cells():
    text = to_csv(["ID", "Title", "Relevance"], [
        {"ID": "1", "Title": "=HYPERLINK(\"http://evil.test\")", "Relevance": -5},
        {"ID": "2", "Title": "@SUM(A1)", "Relevance": 10},
        {"ID": "3", "Title": "Plain title", "Relevance": 0},
    ])
    assert _rows(text)[1:] == [
        ["1", "'=HYPERLINK(\"http://evil.test\")", "-5"],
        ["2", "'@SUM(A1)", "10"],
        ["3", "Plain title", "0"],
    ]


async def _seed(client, user, workspace_id):
    headers = get_auth_headers(user)
    signal_id = (await client.post("/api/v1/signals", headers=headers, json={
        "workspace_id": workspace_id, "title": "Heat pumps", "url": "https://example.com/hp",
        "summary": "Installations up", "ai_tags": ["energy", "buildings"], "relevance": 0,
        "horizon": "0_5", "certainty": "certain",
    })).json()["id"]
    trend_id = (await client.post("/api/v1/trends", headers=headers, json={
        "workspace_id": workspace_id, "title": "Electrification", "description": "Everything plugs in",
        "impact": "high", "signal_ids": [signal_id],
    })).json()["id"]
    return signal_id, trend_id


@pytest.mark.asyncio
class TestExports:
    async def test_signals(self, client: AsyncClient, workspace, owner_user):
        signal_id, _ = await _seed(client, owner_user, workspace.id)
        res = await client.get(
            f"/api/v1/workspaces/{workspace.id}/export/signals.csv", headers=get_auth_headers(owner_user),
        )
        assert res.status_code == 200
        assert res.headers["content-type"].startswith("text/csv")
        assert res.headers["content-disposition"] == (
            f'attachment; filename="signals_Acme_{date.today().isoformat()}.csv"'
        )

        rows = _rows(res.text)
        assert rows[0] == SIGNAL_COLUMNS
        record = dict(zip(rows[0], rows[1]))
        assert record["ID"] == signal_id
        assert record["Tags"] == "energy, buildings"
        assert record["Relevance"] == "0"
        assert record["Horizon"] == "0_5"
        assert record["Certainty"] == "certain"

    async def test_trends(self, client: AsyncClient, workspace, owner_user):
        _, trend_id = await _seed(client, owner_user, workspace.id)
        res = await client.get(
            f"/api/v1/workspaces/{workspace.id}/export/trends.csv", headers=get_auth_headers(owner_user),
        )
        rows = _rows(res.text)
        assert rows[0] == TREND_COLUMNS
        assert rows[1][:5] == [trend_id, "Electrification", "Everything plugs in", "high", "uncertain"]

    async def test_links(self, client: AsyncClient, workspace, owner_user):
        signal_id, trend_id = await _seed(client, owner_user, workspace.id)
        res = await client.get(
            f"/api/v1/workspaces/{workspace.id}/export/links.csv", headers=get_auth_headers(owner_user),
        )
        assert "signal_trend_links_Acme_" in res.headers["content-disposition"]
        assert _rows(res.text) == [LINK_COLUMNS, [signal_id, trend_id]]

    async def test_outsider_gets_headers_only(self, client: AsyncClient, workspace, owner_user, outsider_user):
        await _seed(client, owner_user, workspace.id)
        res = await client.get(
            f"/api/v1/workspaces/{workspace.id}/export/signals.csv", headers=get_auth_headers(outsider_user),
        )
        assert res.status_code == 200
        assert _rows(res.text) == [SIGNAL_COLUMNS]
        assert "Acme" not in res.headers["content-disposition"]

    async def test_unknown_dataset(self, client: AsyncClient, workspace, owner_user):
        res = await client.get(
            f"/api/v1/workspaces/{workspace.id}/export/sources.csv", headers=get_auth_headers(owner_user),
        )
        assert res.status_code == 422

    async def test_formula_titles_exported_as_text(self, client: AsyncClient, workspace, owner_user):
        headers = get_auth_headers(owner_user)
        await client.post("/api/v1/signals", headers=headers, json={
            "workspace_id": workspace.id, "title": "=1+1", "summary": "+cmd|' /C calc'!A0",
        })
        res = await client.get(f"/api/v1/workspaces/{workspace.id}/export/signals.csv", headers=headers)
        record = dict(zip(*_rows(res.text)[:2]))
        assert record["Title"] == "'=1+1"
        assert record["Summary"] == "'+cmd|' /C calc'!A0"
