"""
API tests for the settings blueprint.
"""

SETTINGS = "/api/v1/settings"


class TestSettingsCrud:
    def test_crud(self, client):
        res = client.post(SETTINGS, json={"key": "ai_temperature", "value": "0.3", "type": "number", "category": "ai"})
        assert res.status_code == 201

        body = client.get(f"{SETTINGS}/ai_temperature").get_json()
        assert body["parsed_value"] == 0.3

        assert client.post(SETTINGS, json={"key": "ai_temperature", "value": "1"}).status_code == 409

        res = client.put(f"{SETTINGS}/ai_temperature", json={"value": "0.7"})
        assert res.get_json()["value"] == "0.7"

        assert [s["key"] for s in client.get(f"{SETTINGS}?category=ai").get_json()] == ["ai_temperature"]

        assert client.delete(f"{SETTINGS}/ai_temperature").status_code == 204
        assert client.get(f"{SETTINGS}/ai_temperature").status_code == 404

    def test_bad_type_is_422(self, client):
        res = client.post(SETTINGS, json={"key": "x", "value": "1", "type": "decimal"})
        assert res.status_code == 422


class TestUpsert:
    def test_creates_then_updates(self, client):
        res = client.post(f"{SETTINGS}/upsert", json={
            "key": "export_format", "value": "pdf", "options": {"category": "documents"},
        })
        assert res.status_code == 200
        assert res.get_json()["category"] == "documents"

        res = client.post(f"{SETTINGS}/upsert", json={"key": "export_format", "value": "docx"})
        assert res.get_json()["value"] == "docx"
        assert res.get_json()["category"] == "documents"
        assert len(client.get(SETTINGS).get_json()) == 1

    def test_options_cannot_override_key(self, client):
        res = client.post(f"{SETTINGS}/upsert", json={
            "key": "export_format", "value": "pdf", "options": {"key": "other", "value": "x"},
        })
        assert res.get_json()["key"] == "export_format"
        assert res.get_json()["value"] == "pdf"

    def test_missing_key_is_422(self, client):
        assert client.post(f"{SETTINGS}/upsert", json={"value": "pdf"}).status_code == 422


class TestDefaultsAndAi:
    def test_initialize_is_idempotent(self, client):
        assert client.post(f"{SETTINGS}/initialize").get_json() == {"created": 5}
        assert client.post(f"{SETTINGS}/initialize").get_json() == {"created": 0}

    def test_ai_settings_are_parsed(self, client):
        client.post(f"{SETTINGS}/initialize")

        body = client.get(f"{SETTINGS}/ai").get_json()

        assert body == {
            "ai_max_tokens": 4000.0,
            "ai_model": "gpt-4",
            "ai_temperature": 0.3,
            "company_context": "",
        }

    def test_company_context_round_trip(self, client):
        assert client.get(f"{SETTINGS}/ai/company-context").get_json() == {"context": ""}

        res = client.post(f"{SETTINGS}/ai/company-context", json={"context": "Payments processor, EU and US"})
        assert res.status_code == 200
        assert res.get_json()["category"] == "ai"

        body = client.get(f"{SETTINGS}/ai/company-context").get_json()
        assert body == {"context": "Payments processor, EU and US"}

    def test_company_context_required(self, client):
        assert client.post(f"{SETTINGS}/ai/company-context", json={}).status_code == 422
